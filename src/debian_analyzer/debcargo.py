"""Editing of debcargo.toml files

debcargo generates the debian/ directory of Rust crates from a small
debian/debcargo.toml file and the crate's Cargo.toml. Most control fields
are therefore not stored anywhere; they are derived from the crate
metadata. The accessors in this module return those derived defaults
whenever debcargo.toml does not override them.
"""

import difflib
import os
import re
from typing import (
    Any,
    FrozenSet,
    List,
    NamedTuple,
    Optional,
    Sequence,
)

import tomlkit
from tomlkit.exceptions import ParseError
from tomlkit.items import Array, Item, Table
from tomlkit.toml_document import TOMLDocument

from .control import canonical_vcs_type, format_description, VCS_FIELD_PREFIX
from .editor import FileEditor
from .exceptions import DocumentParseError
from .relations import Entry, Relations, ensure_relation, parse_relations
from .util import read_text_if_exists

DEFAULT_MAINTAINER = (
    "Debian Rust Maintainers <pkg-rust-maintainers@alioth-lists.debian.net>"
)
DEFAULT_SECTION = "rust"
CURRENT_STANDARDS_VERSION = "4.5.1"
DEFAULT_PRIORITY = "optional"

_SEMVER_RE = re.compile(
    r"^(\d+)\.(\d+)\.(\d+)(?:-([0-9A-Za-z.\-]+))?(?:\+([0-9A-Za-z.\-]+))?$"
)


class CrateVersion(NamedTuple):
    major: int
    minor: int
    patch: int
    pre: Optional[str] = None
    build: Optional[str] = None

    @classmethod
    def parse(cls, version: str) -> "CrateVersion":
        m = _SEMVER_RE.match(version.strip())
        if m is None:
            raise DocumentParseError(f'Invalid crate version "{version}"')
        return cls(
            int(m.group(1)),
            int(m.group(2)),
            int(m.group(3)),
            m.group(4),
            m.group(5),
        )

    def __str__(self) -> str:
        v = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            v += f"-{self.pre}"
        if self.build:
            v += f"+{self.build}"
        return v


def debnormalize(name: str) -> str:
    return name.lower().replace("_", "-")


def semver_pair(version: CrateVersion) -> str:
    return f"{version.major}.{version.minor}"


def debcargo_binary_name(crate_name: str, suffix: str = "") -> str:
    return f"librust-{debnormalize(crate_name)}{suffix}-dev"


def unmangle_debcargo_version(version: str) -> str:
    return version.replace("~", "-")


def _plain(value: Any) -> Any:
    if isinstance(value, Item):
        return value.unwrap()
    return value


def _parse_toml(text: str, what: str) -> TOMLDocument:
    try:
        return tomlkit.parse(text)
    except ParseError as e:
        raise DocumentParseError(f"Could not parse {what}: {e}") from e


def _update_array(table: Table, key: str, new_items: Sequence[str]) -> None:
    """Make the array under `key` hold `new_items`

    An existing array is edited in place, so comments and the layout of
    untouched items survive.
    """
    existing = table.get(key)
    if not isinstance(existing, Array):
        array = tomlkit.array()
        array.extend(new_items)
        table[key] = array
        return
    old_items = [str(_plain(item)) for item in existing]
    if old_items == list(new_items):
        return
    matcher = difflib.SequenceMatcher(a=old_items, b=list(new_items), autojunk=False)
    for tag, i1, i2, j1, j2 in reversed(matcher.get_opcodes()):
        if tag == "equal":
            continue
        common = min(i2 - i1, j2 - j1)
        for k in range(common):
            existing[i1 + k] = new_items[j1 + k]
        for k in reversed(range(i1 + common, i2)):
            del existing[k]
        for k in range(common, j2 - j1):
            existing.insert(i1 + k, new_items[j1 + k])


def _entry_texts(item: str) -> List[str]:
    return [str(e).strip() for e in parse_relations(item)]


def _regroup_entries(entries: List[str], old_items: Sequence[str]) -> List[str]:
    # An item may hold several comma separated entries; such an item is
    # kept as it is while all of its entries are still present in order.
    grouped = [(_entry_texts(item), item) for item in old_items]
    grouped = [(texts, item) for texts, item in grouped if len(texts) > 1]
    result = []
    i = 0
    while i < len(entries):
        for texts, item in grouped:
            if entries[i : i + len(texts)] == texts:
                result.append(item)
                i += len(texts)
                break
        else:
            result.append(entries[i])
            i += 1
    return result


def _extra_field_pattern(field: str) -> "re.Pattern[str]":
    return re.compile(rf"^{re.escape(field)}:\s*(.*)$", re.IGNORECASE)


class DebcargoEditor(FileEditor):
    """A debcargo.toml file plus (optionally) the Cargo.toml it applies to"""

    __slots__ = ("debcargo", "cargo")

    def __init__(
        self,
        debcargo: Optional[TOMLDocument] = None,
        cargo: Optional[TOMLDocument] = None,
        path: Optional[str] = None,
    ) -> None:
        super().__init__(path)
        self.debcargo = debcargo if debcargo is not None else tomlkit.document()
        self.cargo = cargo

    @classmethod
    def from_text(
        cls,
        debcargo_text: str,
        cargo_text: Optional[str] = None,
        path: Optional[str] = None,
    ) -> "DebcargoEditor":
        debcargo = _parse_toml(debcargo_text, path or "debcargo.toml")
        cargo = (
            _parse_toml(cargo_text, "Cargo.toml") if cargo_text is not None else None
        )
        return cls(debcargo, cargo, path)

    @classmethod
    def open(cls, path: str) -> "DebcargoEditor":
        with open(path, encoding="utf-8") as fd:
            return cls.from_text(fd.read(), path=path)

    @classmethod
    def from_directory(cls, directory: str) -> "DebcargoEditor":
        path = os.path.join(directory, "debian", "debcargo.toml")
        with open(path, encoding="utf-8") as fd:
            debcargo_text = fd.read()
        cargo_text = read_text_if_exists(os.path.join(directory, "Cargo.toml"))
        return cls.from_text(debcargo_text, cargo_text, path=path)

    def _serialize(self) -> str:
        return tomlkit.dumps(self.debcargo)

    def __str__(self) -> str:
        return self._serialize()

    def _cargo_package_field(self, key: str) -> Optional[str]:
        if self.cargo is None:
            return None
        package = self.cargo.get("package")
        if package is None:
            return None
        value = _plain(package.get(key))
        return value if isinstance(value, str) else None

    @property
    def crate_name(self) -> Optional[str]:
        return self._cargo_package_field("name")

    @property
    def crate_version(self) -> Optional[CrateVersion]:
        version = self._cargo_package_field("version")
        if version is None:
            return None
        return CrateVersion.parse(version)

    @property
    def semver_suffix(self) -> bool:
        return bool(_plain(self.debcargo.get("semver_suffix", False)))

    @property
    def features(self) -> FrozenSet[str]:
        if self.cargo is None:
            return frozenset()
        features = self.cargo.get("features")
        if features is None:
            return frozenset()
        return frozenset(str(k) for k in features.keys())

    @property
    def global_summary(self) -> Optional[str]:
        summary = _plain(self.debcargo.get("summary"))
        if isinstance(summary, str):
            return f"{summary} - Rust source code"
        description = self._cargo_package_field("description")
        if description is None:
            return None
        return description.split("\n")[0]

    @property
    def global_description(self) -> Optional[str]:
        description = _plain(self.debcargo.get("description"))
        return description if isinstance(description, str) else None

    def _version_suffix(self) -> Optional[str]:
        if not self.semver_suffix:
            return ""
        version = self.crate_version
        if version is None:
            return None
        return f"-{semver_pair(version)}"

    def source(self) -> "DebcargoSource":
        return DebcargoSource(self)

    def binaries(self) -> List["DebcargoBinary"]:
        crate_name = self.crate_name
        suffix = self._version_suffix()
        if crate_name is None or suffix is None:
            return []
        binaries = [
            DebcargoBinary(self, "lib", debcargo_binary_name(crate_name, suffix))
        ]
        if _plain(self.debcargo.get("bin", not self.semver_suffix)):
            bin_name = _plain(self.debcargo.get("bin_name", crate_name))
            binaries.append(DebcargoBinary(self, "bin", str(bin_name)))
        return binaries


class DebcargoSource:
    """View of the `[source]` table, re-resolved on each access"""

    __slots__ = ("_editor",)

    def __init__(self, editor: DebcargoEditor) -> None:
        self._editor = editor

    def _table(self) -> Optional[Table]:
        return self._editor.debcargo.get("source")

    def _table_for_update(self) -> Table:
        doc = self._editor.debcargo
        if "source" not in doc:
            doc["source"] = tomlkit.table()
        return doc["source"]

    def _get(self, key: str) -> Any:
        table = self._table()
        if table is None:
            return None
        return _plain(table.get(key))

    def _set(self, key: str, value: Any) -> None:
        table = self._table_for_update()
        if key in table and _plain(table[key]) == value:
            return
        table[key] = value

    def _get_str(self, key: str) -> Optional[str]:
        value = self._get(key)
        return value if isinstance(value, str) else None

    @property
    def name(self) -> Optional[str]:
        crate_name = self._editor.crate_name
        suffix = self._editor._version_suffix()
        if crate_name is None or suffix is None:
            return None
        return f"rust-{debnormalize(crate_name)}{suffix}"

    @property
    def standards_version(self) -> str:
        return self._get_str("standards-version") or CURRENT_STANDARDS_VERSION

    @standards_version.setter
    def standards_version(self, version: str) -> None:
        self._set("standards-version", version)

    @property
    def homepage(self) -> Optional[str]:
        homepage = self._get_str("homepage")
        if homepage is not None:
            return homepage
        return self._editor._cargo_package_field("homepage")

    @homepage.setter
    def homepage(self, homepage: str) -> None:
        self._set("homepage", homepage)

    @property
    def vcs_git(self) -> Optional[str]:
        vcs_git = self._get_str("vcs_git")
        if vcs_git is not None:
            return vcs_git
        crate_name = self._editor.crate_name
        if crate_name is None:
            return None
        return f"https://salsa.debian.org/rust-team/debcargo-conf.git [src/{crate_name.lower()}]"

    @vcs_git.setter
    def vcs_git(self, url: str) -> None:
        self._set("vcs_git", url)

    @property
    def vcs_browser(self) -> Optional[str]:
        vcs_browser = self._get_str("vcs_browser")
        if vcs_browser is not None:
            return vcs_browser
        crate_name = self._editor.crate_name
        if crate_name is None:
            return None
        return f"https://salsa.debian.org/rust-team/debcargo-conf/tree/master/src/{crate_name.lower()}"

    @vcs_browser.setter
    def vcs_browser(self, url: str) -> None:
        self._set("vcs_browser", url)

    @property
    def section(self) -> str:
        return self._get_str("section") or DEFAULT_SECTION

    @section.setter
    def section(self, section: str) -> None:
        self._set("section", section)

    @property
    def priority(self) -> str:
        return self._get_str("priority") or DEFAULT_PRIORITY

    @priority.setter
    def priority(self, priority: str) -> None:
        self._set("priority", priority)

    @property
    def rules_requires_root(self) -> bool:
        value = self._get("requires_root")
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() != "no"
        return False

    @rules_requires_root.setter
    def rules_requires_root(self, requires_root: bool) -> None:
        self._set("requires_root", "yes" if requires_root else "no")

    @property
    def maintainer(self) -> str:
        return self._get_str("maintainer") or DEFAULT_MAINTAINER

    @maintainer.setter
    def maintainer(self, maintainer: str) -> None:
        self._set("maintainer", maintainer)

    @property
    def uploaders(self) -> Optional[List[str]]:
        uploaders = self._get("uploaders")
        if not isinstance(uploaders, list):
            return None
        return [u for u in uploaders if isinstance(u, str)]

    @uploaders.setter
    def uploaders(self, uploaders: Sequence[str]) -> None:
        if self.uploaders == list(uploaders):
            return
        _update_array(self._table_for_update(), "uploaders", uploaders)

    @property
    def build_depends(self) -> Relations:
        build_depends = self._get("build_depends")
        if not isinstance(build_depends, list):
            return Relations()
        entries: List[Entry] = []
        for item in build_depends:
            if isinstance(item, str):
                entries.extend(parse_relations(item))
        return Relations(entries)

    @build_depends.setter
    def build_depends(self, relations: Relations) -> None:
        entries = [str(e).strip() for e in relations]
        old_items = self._get("build_depends")
        if isinstance(old_items, list):
            entries = _regroup_entries(
                entries, [item for item in old_items if isinstance(item, str)]
            )
        _update_array(self._table_for_update(), "build_depends", entries)

    def ensure_build_dep(self, entry: Entry) -> bool:
        relations = self.build_depends
        if not ensure_relation(relations, entry):
            return False
        self.build_depends = relations
        return True

    @property
    def extra_lines(self) -> List[str]:
        extra_lines = self._get("extra_lines")
        if not isinstance(extra_lines, list):
            return []
        return [line for line in extra_lines if isinstance(line, str)]

    def get_extra_field(self, field: str) -> Optional[str]:
        pattern = _extra_field_pattern(field)
        for line in self.extra_lines:
            m = pattern.match(line)
            if m:
                return m.group(1)
        return None

    def set_extra_field(self, field: str, value: str) -> None:
        """Set a `Field: value` line in extra_lines, replacing an existing one"""
        table = self._table_for_update()
        new_line = f"{field}: {value}"
        extra_lines = table.get("extra_lines")
        if extra_lines is None:
            extra_lines = tomlkit.array()
            extra_lines.append(new_line)
            table["extra_lines"] = extra_lines
            return
        pattern = _extra_field_pattern(field)
        for i, line in enumerate(extra_lines):
            if isinstance(_plain(line), str) and pattern.match(str(line)):
                if str(line) != new_line:
                    extra_lines[i] = new_line
                return
        extra_lines.append(new_line)

    def get_vcs_url(self, vcs_type: str) -> Optional[str]:
        lowered = vcs_type.lower()
        if lowered == "git":
            return self.vcs_git
        if lowered == "browser":
            return self.vcs_browser
        return self.get_extra_field(f"{VCS_FIELD_PREFIX}{canonical_vcs_type(vcs_type)}")

    def set_vcs_url(self, vcs_type: str, url: str) -> None:
        lowered = vcs_type.lower()
        if lowered == "git":
            self.vcs_git = url
        elif lowered == "browser":
            self.vcs_browser = url
        else:
            self.set_extra_field(
                f"{VCS_FIELD_PREFIX}{canonical_vcs_type(vcs_type)}", url
            )


_DEFAULT_BIN_DESCRIPTION = (
    "This package contains the source for the Rust {crate} crate,"
    " packaged by debcargo for use with cargo and dh-cargo."
)


class DebcargoBinary:
    """A binary package generated by debcargo

    `kind` is either "lib" or "bin" and selects the `[packages.<kind>]`
    table holding the overrides for this binary.
    """

    __slots__ = ("_editor", "kind", "name")

    def __init__(self, editor: DebcargoEditor, kind: str, name: str) -> None:
        self._editor = editor
        self.kind = kind
        self.name = name

    def _get(self, key: str) -> Optional[str]:
        packages = self._editor.debcargo.get("packages")
        if packages is None:
            return None
        table = packages.get(self.kind)
        if table is None:
            return None
        value = _plain(table.get(key))
        return value if isinstance(value, str) else None

    @property
    def architecture(self) -> str:
        return "any"

    @property
    def multi_arch(self) -> str:
        return "same"

    @property
    def section(self) -> Optional[str]:
        return self._get("section")

    @property
    def summary(self) -> Optional[str]:
        summary = self._get("summary")
        if summary is not None:
            return summary
        return self._editor.global_summary

    @property
    def long_description(self) -> Optional[str]:
        description = self._get("description")
        if description is not None:
            return description
        description = self._editor.global_description
        if description is not None:
            return description
        crate_name = self._editor.crate_name
        if self.kind == "lib":
            return f'Source code for Debianized Rust crate "{crate_name}"'
        if self.kind == "bin":
            return _DEFAULT_BIN_DESCRIPTION.format(crate=crate_name)
        return None

    @property
    def description(self) -> Optional[str]:
        summary = self.summary
        long_description = self.long_description
        if summary is None or long_description is None:
            return None
        return format_description(summary, long_description.splitlines())

    @property
    def depends(self) -> Optional[str]:
        return self._get("depends")

    @property
    def recommends(self) -> Optional[str]:
        return self._get("recommends")

    @property
    def suggests(self) -> Optional[str]:
        return self._get("suggests")

    def default_provides(self) -> Optional[str]:
        """The Provides field debcargo generates for the library package"""
        editor = self._editor
        crate_name = editor.crate_name
        version = editor.crate_version
        if self.kind != "lib" or crate_name is None or version is None:
            return None
        version_suffixes = []
        if not editor.semver_suffix:
            version_suffixes.append("")
        version_suffixes.append(f"-{version.major}")
        version_suffixes.append(f"-{version.major}.{version.minor}")
        version_suffixes.append(f"-{version.major}.{version.minor}.{version.patch}")
        feature_suffixes = ["", "+default"]
        feature_suffixes.extend(f"+{f}" for f in sorted(editor.features))

        provides = set()
        for version_suffix in version_suffixes:
            for feature_suffix in feature_suffixes:
                provides.add(
                    debcargo_binary_name(crate_name, version_suffix + feature_suffix)
                )
        provides.discard(self.name)
        if not provides:
            return None
        return "\n" + ",\n ".join(
            f"{p} (= ${{binary:Version}})" for p in sorted(provides)
        )
