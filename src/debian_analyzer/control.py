import os
from typing import (
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
)

from debian._deb822_repro import (
    parse_deb822_file,
    Deb822FileElement,
    Deb822ParagraphElement,
)

from .editor import FileEditor
from .exceptions import DocumentParseError
from .relations import Relations, parse_relations, package_sort_key

VCS_FIELD_PREFIX = "Vcs-"
_VCS_TYPE_SPELLING = {
    "arch": "Arch",
    "browser": "Browser",
    "bzr": "Bzr",
    "cvs": "Cvs",
    "darcs": "Darcs",
    "git": "Git",
    "hg": "Hg",
    "mtn": "Mtn",
    "svn": "Svn",
}

RELATION_FIELDS = frozenset(
    [
        "build-depends",
        "build-depends-indep",
        "build-depends-arch",
        "build-conflicts",
        "build-conflicts-indep",
        "build-conflicts-arch",
        "pre-depends",
        "depends",
        "recommends",
        "suggests",
        "enhances",
        "breaks",
        "conflicts",
        "provides",
        "replaces",
        "static-built-using",
        "built-using",
    ]
)

_WRAP_AND_SORT_INDENT = " " * 4
_WRAP_AND_SORT_MAX_LINE_LENGTH = 79


def canonical_vcs_type(vcs_type: str) -> str:
    """Normalize the case of a VCS type name (`GIT` -> `Git`)"""
    lowered = vcs_type.lower()
    return _VCS_TYPE_SPELLING.get(lowered, lowered.capitalize())


def vcs_field_name(vcs_type: str) -> str:
    return f"{VCS_FIELD_PREFIX}{canonical_vcs_type(vcs_type)}"


def format_description(summary: str, long_description: Iterable[str]) -> str:
    """Format a Description field value from a summary and long description lines

    Empty lines are written as "." as required by Debian policy.
    """
    lines = [summary]
    for line in long_description:
        stripped = line.rstrip()
        lines.append(f" {stripped}" if stripped else " .")
    return "\n".join(lines)


def set_field_value(paragraph: Deb822ParagraphElement, field: str, value: str) -> None:
    """Set a field, keeping the layout of values that start on the next line"""
    if value.startswith("\n"):
        paragraph.set_field_from_raw_string(field, value + "\n")
    else:
        paragraph[field] = value


def _lookup_field_name(
    paragraph: Deb822ParagraphElement,
    field: str,
) -> Optional[str]:
    lowered = field.lower()
    for name in paragraph.keys():
        if name.lower() == lowered:
            return str(name)
    return None


def _comment_blocks(
    raw_value: str,
) -> Tuple[List[str], List[Tuple[int, str, List[str]]]]:
    value_lines: List[str] = []
    blocks: List[Tuple[int, str, List[str]]] = []
    pending: List[str] = []
    for line in raw_value.splitlines(keepends=True):
        if line.startswith("#"):
            pending.append(line)
            continue
        if pending:
            blocks.append((len(value_lines), line.strip(), pending))
            pending = []
        value_lines.append(line)
    return value_lines, blocks


def _set_relations_keeping_comments(
    paragraph: Deb822ParagraphElement,
    field: str,
    new_value: str,
) -> bool:
    """Rewrite a relationship field, keeping comment lines inside its value

    Each block of comment lines stays in front of the value line it used to
    precede, or the line at the same position if that line changed.

    :return: False if there were no comments to keep
    """
    kvpair = paragraph.get_kvpair_element(field, use_get=True)
    if kvpair is None:
        return False
    old_lines, blocks = _comment_blocks(kvpair.value_element.convert_to_text())
    if not blocks:
        return False
    if new_value.startswith("\n"):
        raw_value = new_value
    else:
        first = old_lines[0]
        indent = first[: len(first) - len(first.lstrip(" \t"))] or " "
        raw_value = indent + new_value
    new_lines = (raw_value + "\n").splitlines(keepends=True)
    if len(new_lines) < 2:
        return False
    stripped = [line.strip() for line in new_lines]
    insertions: Dict[int, List[str]] = {}
    for index, anchor, comments in blocks:
        try:
            target = stripped.index(anchor, 1)
        except ValueError:
            target = min(index, len(new_lines) - 1)
        insertions.setdefault(target, []).extend(comments)
    raw_lines = []
    for i, line in enumerate(new_lines):
        raw_lines.extend(insertions.get(i, []))
        raw_lines.append(line)
    paragraph.set_field_from_raw_string(field, "".join(raw_lines))
    return True


def get_relations(paragraph: Deb822ParagraphElement, field: str) -> Relations:
    return parse_relations(paragraph.get(field, ""))


def set_relations(
    paragraph: Deb822ParagraphElement,
    field: str,
    relations: Relations,
) -> bool:
    """Store relations in a field unless that would not change anything

    An empty relation set removes the field.

    :return: True if the paragraph was changed
    """
    new_value = str(relations)
    old_value = paragraph.get(field)
    if not relations:
        if old_value is None:
            return False
        del paragraph[field]
        return True
    if old_value == new_value:
        return False
    if not _set_relations_keeping_comments(paragraph, field, new_value):
        set_field_value(paragraph, field, new_value)
    return True


def get_vcs_url(paragraph: Deb822ParagraphElement, vcs_type: str) -> Optional[str]:
    field = _lookup_field_name(paragraph, vcs_field_name(vcs_type))
    if field is None:
        return None
    return paragraph[field]


def set_vcs_url(paragraph: Deb822ParagraphElement, vcs_type: str, url: str) -> None:
    wanted = vcs_field_name(vcs_type)
    field = _lookup_field_name(paragraph, wanted)
    if field is None:
        field = wanted
    elif paragraph[field] == url:
        return
    paragraph[field] = url


def wrap_and_sort_relations(relations: Relations, field: str) -> str:
    """Render relations sorted by name, one per line if they do not fit on one"""
    seen = set()
    entries = []
    for entry in relations:
        key = str(entry).strip()
        if key in seen:
            continue
        seen.add(key)
        entries.append(entry)
    entries.sort(key=lambda e: package_sort_key(e.relations[0].name))
    rendered = [" | ".join(str(r) for r in e.relations) for e in entries]
    one_line = ", ".join(rendered)
    if len(field) + 2 + len(one_line) <= _WRAP_AND_SORT_MAX_LINE_LENGTH:
        return one_line
    return f",\n{_WRAP_AND_SORT_INDENT}".join(rendered)


class ControlFileEditor(FileEditor):
    """Round-trip editor for debian/control style files

    The file is kept as a python-debian `Deb822FileElement`, so anything not
    touched through this editor is written back byte for byte.
    """

    __slots__ = ("_deb822_file",)

    def __init__(
        self,
        deb822_file: Deb822FileElement,
        path: Optional[str] = None,
    ) -> None:
        super().__init__(path)
        self._deb822_file = deb822_file

    @classmethod
    def from_lines(
        cls,
        lines: Iterable[str],
        path: Optional[str] = None,
    ) -> "ControlFileEditor":
        try:
            deb822_file = parse_deb822_file(
                lines,
                accept_files_with_error_tokens=False,
                accept_files_with_duplicated_fields=False,
            )
        except ValueError as e:
            where = path if path is not None else "control file"
            raise DocumentParseError(f"Could not parse {where}: {e.args[0]}") from e
        return cls(deb822_file, path)

    @classmethod
    def from_text(cls, text: str, path: Optional[str] = None) -> "ControlFileEditor":
        return cls.from_lines(text.splitlines(keepends=True), path)

    @classmethod
    def open(cls, path: str) -> "ControlFileEditor":
        with open(path, encoding="utf-8") as fd:
            return cls.from_lines(fd, path)

    @classmethod
    def from_directory(cls, directory: str) -> "ControlFileEditor":
        return cls.open(os.path.join(directory, "debian", "control"))

    @property
    def deb822_file(self) -> Deb822FileElement:
        return self._deb822_file

    @property
    def paragraphs(self) -> List[Deb822ParagraphElement]:
        return list(self._deb822_file)

    def source_paragraph(self) -> Optional[Deb822ParagraphElement]:
        paragraphs = self.paragraphs
        if paragraphs and "Source" in paragraphs[0]:
            return paragraphs[0]
        return None

    def binary_paragraphs(self) -> List[Deb822ParagraphElement]:
        return [p for p in self.paragraphs if "Package" in p]

    def wrap_and_sort(self) -> bool:
        changed = False
        for paragraph in self.paragraphs:
            for field in list(paragraph.keys()):
                if field.lower() not in RELATION_FIELDS:
                    continue
                value = paragraph[field]
                new_value = wrap_and_sort_relations(parse_relations(value), field)
                if new_value != value:
                    if not _set_relations_keeping_comments(paragraph, field, new_value):
                        set_field_value(paragraph, field, new_value)
                    changed = True
        return changed

    def _serialize(self) -> str:
        return self._deb822_file.convert_to_text()

    def __str__(self) -> str:
        return self._serialize()


def set_list_field(
    paragraph: Deb822ParagraphElement,
    field: str,
    values: Sequence[str],
) -> None:
    if not values:
        if field in paragraph:
            del paragraph[field]
        return
    new_value = ", ".join(values)
    if paragraph.get(field) != new_value:
        paragraph[field] = new_value
