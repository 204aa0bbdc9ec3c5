"""Manipulation of debian/rules

The `dh_invoke_*` functions rewrite a single recipe line that runs `dh`.
They are plain regular expression substitutions on the text of the line
and do not try to understand shell syntax.
"""

import os
import re
from typing import Callable, List, Optional

from .editor import FileEditor
from .makefile import Makefile, Rule
from .util import read_text_if_exists

OVERRIDE_PREFIX = "override_"
_CDBS_INCLUDE = "include /usr/share/cdbs/"
_DH_INVOCATION = re.compile(r"^\s*dh(?:\s|$)")


def dh_invoke_add_with(line: str, with_argument: str) -> str:
    """Add a value to the `--with` argument of a dh invocation

    >>> dh_invoke_add_with("dh $@", "python3")
    'dh $@ --with=python3'
    >>> dh_invoke_add_with("dh $@ --with=foo", "python3")
    'dh $@ --with=python3,foo'
    """
    if with_argument in line:
        return line
    if " --with" not in line:
        return f"{line} --with={with_argument}"
    return re.sub(
        r"([ \t])--with([ =])([^ \t]+)",
        lambda m: f"{m.group(1)}--with={with_argument},{m.group(3)}",
        line,
        count=1,
    )


def dh_invoke_get_with(line: str) -> List[str]:
    """All values passed via `--with` in order of appearance"""
    result = []
    for value in re.findall(r"[ \t]--with[ =]([^ \t]+)", line):
        result.extend(value.split(","))
    return result


def dh_invoke_drop_with(line: str, with_argument: str) -> str:
    """Remove a value from the `--with` argument of a dh invocation

    The flag itself goes away when the value was its only item.

    >>> dh_invoke_drop_with("dh $@ --with=foo,bar", "foo")
    'dh $@ --with=bar'
    >>> dh_invoke_drop_with("dh $@ --with=foo", "foo")
    'dh $@'
    """
    if with_argument not in line:
        return line
    escaped = re.escape(with_argument)
    # Sole item
    line = re.sub(
        rf"[ \t]--with[ =]{escaped}( .+|)$",
        lambda m: m.group(1),
        line,
        count=1,
    )
    # First item
    line = re.sub(
        rf"([ \t])--with([ =]){escaped},",
        lambda m: f"{m.group(1)}--with{m.group(2)}",
        line,
        count=1,
    )
    # Middle item
    line = re.sub(
        rf"([ \t])--with([ =])(.+),{escaped}([ ,])",
        lambda m: f"{m.group(1)}--with{m.group(2)}{m.group(3)}{m.group(4)}",
        line,
        count=1,
    )
    # Last item
    line = re.sub(
        rf"([ \t])--with([ =])(.+),{escaped}$",
        lambda m: f"{m.group(1)}--with{m.group(2)}{m.group(3)}",
        line,
        count=1,
    )
    return line


def dh_invoke_drop_argument(line: str, argument: str) -> str:
    """Remove a whitespace delimited argument from a dh invocation

    >>> dh_invoke_drop_argument("dh $@ --foo --bar", "--foo")
    'dh $@ --bar'
    """
    if argument not in line:
        return line
    escaped = re.escape(argument)
    line = re.sub(rf"[ \t]+{escaped}$", "", line, count=1)
    line = re.sub(
        rf"([ \t]){escaped}[ \t]",
        lambda m: m.group(1),
        line,
        count=1,
    )
    return line


def dh_invoke_replace_argument(line: str, old: str, new: str) -> str:
    """Replace a whitespace delimited argument of a dh invocation

    >>> dh_invoke_replace_argument("dh $@ --foo --baz", "--foo", "--bar")
    'dh $@ --bar --baz'
    """
    if old not in line:
        return line
    escaped = re.escape(old)
    line = re.sub(
        rf"([ \t]){escaped}$",
        lambda m: f"{m.group(1)}{new}",
        line,
        count=1,
    )
    line = re.sub(
        rf"([ \t]){escaped}([ \t])",
        lambda m: f"{m.group(1)}{new}{m.group(2)}",
        line,
        count=1,
    )
    return line


def check_cdbs(path: str) -> bool:
    """Whether the rules file at `path` includes a CDBS makefile fragment

    A missing file does not use CDBS.
    """
    content = read_text_if_exists(path)
    if content is None:
        return False
    for line in content.splitlines():
        if line.startswith("-"):
            line = line[1:]
        if line.startswith(_CDBS_INCLUDE):
            return True
    return False


def is_dh_invocation(recipe_line: str) -> bool:
    return _DH_INVOCATION.match(recipe_line) is not None


def is_pointless_override(rule: Rule) -> bool:
    """Whether `rule` only runs the command it overrides

    For example::

        override_dh_auto_build:
        \tdh_auto_build
    """
    targets = rule.targets
    if len(targets) != 1 or not targets[0].startswith(OVERRIDE_PREFIX):
        return False
    if rule.prerequisites:
        return False
    recipes = [r for r in rule.recipes if r.strip()]
    if len(recipes) != 1:
        return False
    return recipes[0].strip() == targets[0][len(OVERRIDE_PREFIX) :]


def discard_pointless_override(makefile: Makefile, rule: Rule) -> bool:
    """Remove `rule` from the makefile if it is a pointless override

    The target is also removed from `.PHONY`.

    :return: True if the rule was removed
    """
    if not is_pointless_override(rule):
        return False
    makefile.drop_rule(rule)
    for target in rule.targets:
        makefile.drop_phony(target)
    return True


def discard_pointless_overrides(makefile: Makefile) -> int:
    """Remove all pointless overrides and return how many were removed"""
    return sum(
        1 for rule in makefile.rules if discard_pointless_override(makefile, rule)
    )


class RulesEditor(FileEditor):
    __slots__ = ("_makefile",)

    def __init__(self, makefile: Makefile, path: Optional[str] = None) -> None:
        super().__init__(path)
        self._makefile = makefile

    @classmethod
    def from_text(cls, text: str, path: Optional[str] = None) -> "RulesEditor":
        return cls(Makefile.from_text(text), path)

    @classmethod
    def open(cls, path: str) -> "RulesEditor":
        with open(path, encoding="utf-8") as fd:
            return cls.from_text(fd.read(), path)

    @classmethod
    def from_directory(cls, directory: str) -> "RulesEditor":
        return cls.open(os.path.join(directory, "debian", "rules"))

    @property
    def makefile(self) -> Makefile:
        return self._makefile

    def dh_invocations(self) -> List[str]:
        return [
            r
            for rule in self._makefile.rules
            for r in rule.recipes
            if is_dh_invocation(r)
        ]

    def update_dh_invocations(self, transform: Callable[[str], str]) -> bool:
        """Apply `transform` to every recipe line that runs dh

        :return: True if any line changed
        """

        def _transform(line: str) -> str:
            if not is_dh_invocation(line):
                return line
            return transform(line)

        changed = False
        for rule in self._makefile.rules:
            if rule.map_recipe_lines(_transform):
                changed = True
        return changed

    def discard_pointless_overrides(self) -> int:
        return discard_pointless_overrides(self._makefile)

    def _serialize(self) -> str:
        return str(self._makefile)

    def __str__(self) -> str:
        return self._serialize()
