"""Whitespace preserving model of Debian relationship fields

A relationship field such as `Build-Depends` is a comma separated list of
entries. Each entry is an OR-group of one or more relations separated by
`|`. Parsing a field with `parse_relations` and converting the result back
with `str()` reproduces the input exactly. Relations that have not been
modified keep their original spelling; only mutated relations are
re-rendered in the canonical `name:arch (op version) [archs] <profiles>`
form.
"""

import re
from typing import (
    List,
    Optional,
    Tuple,
    Iterator,
    Iterable,
    Union,
    Sequence,
)

from debian.debian_support import Version

from .exceptions import InvalidVersionError, UnparsableRelationError

_RELATION_RE = re.compile(
    r"""
    ^(?P<name>\$\{[^}]+\}|[a-zA-Z0-9][a-zA-Z0-9+.\-]*)
    (?::(?P<archqual>[a-zA-Z0-9][a-zA-Z0-9\-]*))?
    (?:\s*\(\s*(?P<op>>>|>=|>|<<|<=|<|=)\s*(?P<version>[A-Za-z0-9$][^)\s]*)\s*\))?
    (?:\s*\[\s*(?P<archs>[^\]]*?)\s*\])?
    (?P<restrictions>(?:\s*<[^>]*>)*)
    $
    """,
    re.VERBOSE,
)
_RESTRICTION_GROUP_RE = re.compile(r"<([^>]*)>")
_SURROUNDING_WHITESPACE = re.compile(r"^(\s*)(.*?)(\s*)$", re.DOTALL)
_REAL_PACKAGE_NAME = re.compile("^[a-z0-9]")

VersionConstraint = Tuple[str, str]


def package_sort_key(package: str) -> Tuple[int, str]:
    # Real package names sort before substvars
    return 0 if _REAL_PACKAGE_NAME.search(package) else 1, package


def _split_whitespace(text: str) -> Tuple[str, str, str]:
    m = _SURROUNDING_WHITESPACE.match(text)
    assert m is not None
    return m.group(1), m.group(2), m.group(3)


class Relation:
    """One package name with its optional qualifiers"""

    __slots__ = ("name", "archqual", "_version", "archs", "restrictions", "_text")

    def __init__(
        self,
        name: str,
        version: Optional[VersionConstraint] = None,
        *,
        archqual: Optional[str] = None,
        archs: Optional[Sequence[str]] = None,
        restrictions: Optional[Sequence[Sequence[str]]] = None,
        text: Optional[str] = None,
    ) -> None:
        self.name = name
        self.archqual = archqual
        self._version = version
        self.archs = tuple(archs) if archs else None
        self.restrictions = (
            tuple(tuple(g) for g in restrictions) if restrictions else None
        )
        self._text = text

    @classmethod
    def parse(cls, text: str) -> "Relation":
        m = _RELATION_RE.match(text)
        if m is None:
            raise UnparsableRelationError(
                f'Cannot parse "{text}" as a relation', text
            )
        op = m.group("op")
        version = (op, m.group("version")) if op is not None else None
        archs_raw = m.group("archs")
        archs = archs_raw.split() if archs_raw else None
        restrictions = [
            g.split() for g in _RESTRICTION_GROUP_RE.findall(m.group("restrictions"))
        ]
        return cls(
            m.group("name"),
            version,
            archqual=m.group("archqual"),
            archs=archs,
            restrictions=restrictions,
            text=text,
        )

    @property
    def version(self) -> Optional[VersionConstraint]:
        return self._version

    @version.setter
    def version(self, new_version: Optional[VersionConstraint]) -> None:
        self._version = new_version
        self._text = None

    @property
    def is_modified(self) -> bool:
        return self._text is None

    def _structural_key(self) -> Tuple[object, ...]:
        return (
            self.name,
            self.archqual,
            self._version,
            self.archs,
            self.restrictions,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Relation):
            return NotImplemented
        return self._structural_key() == other._structural_key()

    def __hash__(self) -> int:
        return hash(self._structural_key())

    def __str__(self) -> str:
        if self._text is not None:
            return self._text
        parts = [self.name]
        if self.archqual:
            parts.append(f":{self.archqual}")
        if self._version is not None:
            op, version = self._version
            parts.append(f" ({op} {version})")
        if self.archs:
            parts.append(f" [{' '.join(self.archs)}]")
        if self.restrictions:
            parts.append(" ")
            parts.append(" ".join(f"<{' '.join(g)}>" for g in self.restrictions))
        return "".join(parts)

    def __repr__(self) -> str:
        return f"Relation({str(self)!r})"


class Entry:
    """An OR-group of alternative relations"""

    __slots__ = ("_parts",)

    def __init__(self, relations: Iterable[Relation]) -> None:
        relations = list(relations)
        if not relations:
            raise ValueError("An entry must have at least one relation")
        last = len(relations) - 1
        self._parts: List[List[Union[str, Relation]]] = [
            ["" if i == 0 else " ", r, "" if i == last else " "]
            for i, r in enumerate(relations)
        ]

    @classmethod
    def parse(cls, text: str) -> "Entry":
        parts: List[List[Union[str, Relation]]] = []
        for alternative in text.split("|"):
            head, content, tail = _split_whitespace(alternative)
            if not content:
                raise UnparsableRelationError(
                    f'Empty alternative in "{text}"', text
                )
            parts.append([head, Relation.parse(content), tail])
        entry = cls.__new__(cls)
        entry._parts = parts
        return entry

    @property
    def relations(self) -> List[Relation]:
        return [p[1] for p in self._parts]  # type: ignore[misc]

    @property
    def names(self) -> List[str]:
        return [r.name for r in self.relations]

    def __len__(self) -> int:
        return len(self._parts)

    def __iter__(self) -> Iterator[Relation]:
        return iter(self.relations)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entry):
            return NotImplemented
        return self.relations == other.relations

    def __hash__(self) -> int:
        return hash(tuple(self.relations))

    def __str__(self) -> str:
        return "|".join(f"{head}{rel}{tail}" for head, rel, tail in self._parts)

    def __repr__(self) -> str:
        return f"Entry({str(self)!r})"


class Relations:
    """An ordered list of entries as written in a relationship field

    Whitespace around each comma separated segment is retained, and so are
    segments without any content (such as the one produced by a trailing
    comma).
    """

    __slots__ = ("_items",)

    def __init__(self, entries: Iterable[Entry] = ()) -> None:
        self._items: List[List[Union[str, Optional[Entry]]]] = []
        for entry in entries:
            self._items.append(["" if not self._items else " ", entry, ""])

    @classmethod
    def parse(cls, text: str) -> "Relations":
        relations = cls()
        if text == "":
            return relations
        for segment in text.split(","):
            head, content, tail = _split_whitespace(segment)
            if not content:
                relations._items.append([segment, None, ""])
                continue
            relations._items.append([head, Entry.parse(content), tail])
        return relations

    @property
    def entries(self) -> List[Entry]:
        return [item[1] for item in self._items if item[1] is not None]  # type: ignore[misc]

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries)

    def __str__(self) -> str:
        return ",".join(
            f"{head}{entry if entry is not None else ''}{tail}"
            for head, entry, tail in self._items
        )

    def __repr__(self) -> str:
        return f"Relations({str(self)!r})"

    def _separator(self, real_indices: Sequence[int]) -> str:
        if len(real_indices) > 1:
            return self._items[real_indices[-1]][0]  # type: ignore[return-value]
        head = self._items[real_indices[0]][0]
        assert isinstance(head, str)
        if "\n" in head:
            return head
        return " "

    def _is_sorted(self, real_indices: Sequence[int]) -> bool:
        keys = [
            package_sort_key(self._items[i][1].relations[0].name)  # type: ignore[union-attr]
            for i in real_indices
        ]
        return keys == sorted(keys)

    def add_entry(self, entry: Entry) -> int:
        """Insert a new entry and return its position among the entries

        The entry goes into its sorted position when the existing entries
        are sorted by name; otherwise it is appended.
        """
        real_indices = [i for i, item in enumerate(self._items) if item[1] is not None]
        if not real_indices:
            self._items = [["", entry, ""]]
            return 0
        separator = self._separator(real_indices)

        insert_before: Optional[int] = None
        if self._is_sorted(real_indices):
            key = package_sort_key(entry.relations[0].name)
            for i in real_indices:
                other = self._items[i][1]
                assert isinstance(other, Entry)
                if package_sort_key(other.relations[0].name) > key:
                    insert_before = i
                    break

        if insert_before is None:
            after = real_indices[-1]
            self._items.insert(after + 1, [separator, entry, ""])
            return len(real_indices)

        displaced = self._items[insert_before]
        self._items.insert(insert_before, [displaced[0], entry, ""])
        displaced[0] = separator
        return real_indices.index(insert_before)


def parse_relations(text: str) -> Relations:
    return Relations.parse(text)


def contains(relations: Relations, name: str) -> bool:
    """Whether any alternative of any entry names `name`"""
    return any(name in entry.names for entry in relations)


def iter_relations(relations: Relations, name: str) -> Iterator[Tuple[int, Entry]]:
    for i, entry in enumerate(relations):
        if name in entry.names:
            yield i, entry


def ensure_relation(relations: Relations, new_entry: Union[Entry, str]) -> bool:
    """Add `new_entry` unless an identical entry is already present

    Only whole entries are compared, so `foo` is still added next to an
    existing `foo | bar`.

    :return: True if the relations were changed
    """
    if isinstance(new_entry, str):
        new_entry = Entry.parse(new_entry)
    if any(entry == new_entry for entry in relations):
        return False
    relations.add_entry(new_entry)
    return True


_FLOOR_OPERATORS = frozenset([">=", ">>", "="])
_PRESERVED_OPERATORS = frozenset([">=", "="])


def parse_version(version: Union[str, Version]) -> Version:
    if isinstance(version, Version):
        return version
    try:
        return Version(version)
    except ValueError as e:
        raise InvalidVersionError(version) from e


def _satisfies_minimum(relation: Relation, minimum_version: Version) -> bool:
    constraint = relation.version
    if constraint is None:
        return False
    op, version = constraint
    return op in _FLOOR_OPERATORS and parse_version(version) >= minimum_version


def ensure_minimum_version(
    relations: Relations,
    name: str,
    minimum_version: Union[str, Version],
) -> bool:
    """Make sure that `name` is required in at least `minimum_version`

    Only entries consisting of a single relation on `name` are considered.
    If there is none, a new `name (>= minimum_version)` entry is added.

    :return: True if the relations were changed
    """
    minimum = parse_version(minimum_version)
    found = False
    changed = False
    for entry in relations:
        if entry.names != [name]:
            continue
        found = True
        relation = entry.relations[0]
        if _satisfies_minimum(relation, minimum):
            continue
        op = ">="
        if relation.version is not None and relation.version[0] in _PRESERVED_OPERATORS:
            op = relation.version[0]
        relation.version = (op, str(minimum))
        changed = True

    if not found:
        relations.add_entry(Entry([Relation(name, (">=", str(minimum)))]))
        changed = True
    return changed
