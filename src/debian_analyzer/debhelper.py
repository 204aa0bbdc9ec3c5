import os
from typing import List, Optional, Union

from debian.debian_support import Version

from .abstract_control import (
    BUILD_DEPENDS,
    ControlEditor,
    SourceView,
)
from .control import ControlFileEditor
from .dh.dh_assistant import supported_compat_levels
from .exceptions import (
    ComplexDebhelperCompatRule,
    DebhelperCompatWithoutVersion,
    DebhelperInWrongField,
)
from .relations import ensure_minimum_version, parse_version
from .release_info import debhelper_version
from .util import read_text_if_exists

DEBHELPER_COMPAT_PACKAGE = "debhelper-compat"
DH_SEQUENCE_PREFIX = "dh-sequence-"
_NON_MAIN_BUILD_DEPENDS_FIELDS = ("Build-Depends-Arch", "Build-Depends-Indep")


def parse_debhelper_compat(text: str) -> Optional[int]:
    """Parse the content of debian/compat (or the X-DH-Compat field)

    Anything after a "#" is ignored. Returns None if there is no number.
    """
    value = text.split("#", 1)[0].strip()
    try:
        return int(value)
    except ValueError:
        return None


def read_debhelper_compat_file(path: str) -> Optional[int]:
    """Read a debian/compat file; a missing file yields None"""
    content = read_text_if_exists(path)
    if content is None:
        return None
    return parse_debhelper_compat(content)


def get_debhelper_compat_level_from_control(source: SourceView) -> Optional[int]:
    """The compat level declared in a source package's control data

    The X-DH-Compat field wins over a `debhelper-compat (= N)` build
    dependency.
    """
    marker = source.compat_marker()
    if marker is not None:
        return parse_debhelper_compat(marker)
    for entry in source.relations(BUILD_DEPENDS):
        for relation in entry.relations:
            if relation.name != DEBHELPER_COMPAT_PACKAGE:
                continue
            if relation.version is None:
                return None
            return parse_debhelper_compat(relation.version[1])
    return None


def get_debhelper_compat_level(directory: str) -> Optional[int]:
    """Find the compat level of the package in `directory`

    debian/compat is consulted before debian/control. Neither file existing
    means there is no compat level.
    """
    level = read_debhelper_compat_file(os.path.join(directory, "debian", "compat"))
    if level is not None:
        return level
    try:
        editor = ControlEditor(ControlFileEditor.from_directory(directory))
    except FileNotFoundError:
        return None
    source = editor.source()
    if source is None:
        return None
    return get_debhelper_compat_level_from_control(source)


def resolve_debhelper_compat_level(
    editor: ControlEditor,
    directory: str,
) -> Optional[int]:
    """Like `get_debhelper_compat_level` but prefers an already opened document"""
    source = editor.source()
    if source is not None:
        level = get_debhelper_compat_level_from_control(source)
        if level is not None:
            return level
    return read_debhelper_compat_file(os.path.join(directory, "debian", "compat"))


def lowest_non_deprecated_compat_level() -> int:
    return supported_compat_levels().lowest_non_deprecated_compat_level


def highest_stable_compat_level() -> int:
    return supported_compat_levels().highest_stable_compat_level


def maximum_debhelper_compat_version(compat_release: str) -> int:
    """The highest compat level usable for packages targeting `compat_release`

    Releases without a known debhelper version fall back to the lowest
    non-deprecated compat level of the installed debhelper.
    """
    version = debhelper_version(compat_release)
    if version is None:
        return lowest_non_deprecated_compat_level()
    return int(Version(version).upstream_version.split(".")[0])


def ensure_minimum_debhelper_version(
    source: SourceView,
    minimum_version: Union[str, Version],
) -> bool:
    """Make sure the package builds with at least the given debhelper version

    debhelper can be pulled in both through a plain `debhelper` build
    dependency and through `debhelper-compat (= N)`. A compat dependency at
    or above the minimum is enough on its own. Otherwise the `debhelper`
    build dependency is raised or added.

    :return: True if Build-Depends changed
    :raises DebhelperInWrongField: debhelper is in Build-Depends-Arch or
      Build-Depends-Indep
    :raises ComplexDebhelperCompatRule: debhelper-compat has alternatives
      or a constraint other than "="
    :raises DebhelperCompatWithoutVersion: debhelper-compat has no version
    :raises InvalidVersionError: `minimum_version` is not a valid version
    """
    minimum_version = parse_version(minimum_version)

    for field in _NON_MAIN_BUILD_DEPENDS_FIELDS:
        for entry in source.relations(field):
            if {"debhelper", DEBHELPER_COMPAT_PACKAGE} & set(entry.names):
                raise DebhelperInWrongField(field)

    relations = source.relations(BUILD_DEPENDS)
    for entry in relations:
        if DEBHELPER_COMPAT_PACKAGE not in entry.names:
            continue
        if len(entry) > 1:
            raise ComplexDebhelperCompatRule()
        constraint = entry.relations[0].version
        if constraint is None:
            raise DebhelperCompatWithoutVersion()
        op, version = constraint
        if op != "=":
            raise ComplexDebhelperCompatRule()
        if parse_version(version) >= minimum_version:
            return False

    if not ensure_minimum_version(relations, "debhelper", minimum_version):
        return False
    source.set_relations(BUILD_DEPENDS, relations)
    return True


def get_sequences(source: SourceView) -> List[str]:
    """Names of the dh add-ons pulled in via dh-sequence-* build dependencies"""
    return [
        relation.name[len(DH_SEQUENCE_PREFIX) :]
        for entry in source.relations(BUILD_DEPENDS)
        for relation in entry.relations
        if relation.name.startswith(DH_SEQUENCE_PREFIX)
    ]
