"""One editing interface for debian/control and debcargo.toml based packages

`ControlEditor` wraps either a `ControlFileEditor` (a real debian/control
file) or a `DebcargoEditor` (debian/debcargo.toml plus Cargo.toml). The
views it hands out (`SourceView`, `BinaryView`) do not hold on to any part
of the underlying document. They look up what they need from the editor
on every access, so they stay valid across other edits.
"""

import dataclasses
import enum
import os
from typing import List, Optional, Sequence, Union

from .control import (
    ControlFileEditor,
    get_relations,
    get_vcs_url,
    set_list_field,
    set_relations,
    set_vcs_url,
)
from .debcargo import DebcargoEditor
from .exceptions import EditorError
from .relations import Entry, Relations, ensure_relation

BUILD_DEPENDS = "Build-Depends"
DH_COMPAT_MARKER_FIELD = "X-DH-Compat"

Backend = Union[ControlFileEditor, DebcargoEditor]


class BackendKind(enum.Enum):
    STANZA = "stanza"
    MANIFEST = "manifest"


class ControlEditor:
    __slots__ = ("kind", "backend")

    def __init__(self, backend: Backend) -> None:
        self.backend = backend
        if isinstance(backend, DebcargoEditor):
            self.kind = BackendKind.MANIFEST
        elif isinstance(backend, ControlFileEditor):
            self.kind = BackendKind.STANZA
        else:
            raise TypeError(f"Unsupported backend {type(backend).__name__}")

    @classmethod
    def from_directory(cls, directory: str) -> "ControlEditor":
        """Open the package in `directory` (the directory containing debian/)

        debcargo managed packages are recognized by debian/debcargo.toml.
        """
        if os.path.exists(os.path.join(directory, "debian", "debcargo.toml")):
            return cls(DebcargoEditor.from_directory(directory))
        return cls(ControlFileEditor.from_directory(directory))

    @property
    def path(self) -> Optional[str]:
        return self.backend.path

    def source(self) -> Optional["SourceView"]:
        if self.kind == BackendKind.STANZA:
            if self._stanza().source_paragraph() is None:
                return None
        return SourceView(self)

    def binaries(self) -> List["BinaryView"]:
        if self.kind == BackendKind.MANIFEST:
            count = len(self._manifest().binaries())
        else:
            count = len(self._stanza().binary_paragraphs())
        return [BinaryView(self, i) for i in range(count)]

    def commit(self) -> bool:
        return self.backend.commit()

    def wrap_and_sort(self) -> bool:
        if self.kind == BackendKind.MANIFEST:
            return False
        return self._stanza().wrap_and_sort()

    def _stanza(self) -> ControlFileEditor:
        assert isinstance(self.backend, ControlFileEditor)
        return self.backend

    def _manifest(self) -> DebcargoEditor:
        assert isinstance(self.backend, DebcargoEditor)
        return self.backend

    def __str__(self) -> str:
        return str(self.backend)


def edit_control(directory: str) -> ControlEditor:
    return ControlEditor.from_directory(directory)


@dataclasses.dataclass(slots=True, frozen=True)
class SourceView:
    editor: ControlEditor

    def _paragraph(self):
        paragraph = self.editor._stanza().source_paragraph()
        if paragraph is None:
            raise EditorError("The source paragraph is no longer present")
        return paragraph

    @property
    def _is_manifest(self) -> bool:
        return self.editor.kind == BackendKind.MANIFEST

    @property
    def name(self) -> Optional[str]:
        if self._is_manifest:
            return self.editor._manifest().source().name
        return self._paragraph().get("Source")

    def relations(self, field: str) -> Relations:
        """The relations of a source relationship field (empty if unset)"""
        if self._is_manifest:
            if field.lower() == BUILD_DEPENDS.lower():
                return self.editor._manifest().source().build_depends
            return Relations()
        return get_relations(self._paragraph(), field)

    def set_relations(self, field: str, relations: Relations) -> bool:
        if not self._is_manifest:
            return set_relations(self._paragraph(), field, relations)
        if field.lower() == BUILD_DEPENDS.lower():
            source = self.editor._manifest().source()
            if str(source.build_depends) == str(relations):
                return False
            source.build_depends = relations
            return True
        if relations:
            raise EditorError(f"debcargo.toml has no equivalent of the {field} field")
        return False

    def ensure_build_dep(self, entry: Union[Entry, str]) -> bool:
        """Add a build dependency unless an identical entry is present

        :return: True if the document changed
        """
        if isinstance(entry, str):
            entry = Entry.parse(entry)
        if self._is_manifest:
            return self.editor._manifest().source().ensure_build_dep(entry)
        paragraph = self._paragraph()
        relations = get_relations(paragraph, BUILD_DEPENDS)
        if not ensure_relation(relations, entry):
            return False
        return set_relations(paragraph, BUILD_DEPENDS, relations)

    def set_maintainer(self, maintainer: str) -> None:
        if self._is_manifest:
            self.editor._manifest().source().maintainer = maintainer
            return
        paragraph = self._paragraph()
        if paragraph.get("Maintainer") != maintainer:
            paragraph["Maintainer"] = maintainer

    def set_uploaders(self, uploaders: Sequence[str]) -> None:
        if self._is_manifest:
            self.editor._manifest().source().uploaders = uploaders
            return
        set_list_field(self._paragraph(), "Uploaders", uploaders)

    def get_vcs_url(self, vcs_type: str) -> Optional[str]:
        if self._is_manifest:
            return self.editor._manifest().source().get_vcs_url(vcs_type)
        return get_vcs_url(self._paragraph(), vcs_type)

    def set_vcs_url(self, vcs_type: str, url: str) -> None:
        if self._is_manifest:
            self.editor._manifest().source().set_vcs_url(vcs_type, url)
            return
        set_vcs_url(self._paragraph(), vcs_type, url)

    def compat_marker(self) -> Optional[str]:
        """The value of the X-DH-Compat field, if any"""
        if self._is_manifest:
            return None
        return self._paragraph().get(DH_COMPAT_MARKER_FIELD)


@dataclasses.dataclass(slots=True, frozen=True)
class BinaryView:
    editor: ControlEditor
    index: int

    @property
    def name(self) -> Optional[str]:
        if self.editor.kind == BackendKind.MANIFEST:
            binaries = self.editor._manifest().binaries()
            if self.index >= len(binaries):
                return None
            return binaries[self.index].name
        paragraphs = self.editor._stanza().binary_paragraphs()
        if self.index >= len(paragraphs):
            return None
        return paragraphs[self.index].get("Package")
