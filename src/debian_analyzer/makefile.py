"""A lossless, line based model of makefiles such as debian/rules

Only rules are understood structurally. Everything else (variable
assignments, conditionals, includes, comments and blank lines) is kept as
opaque lines. `str(Makefile.from_text(text)) == text` always holds.
"""

import re
from typing import Callable, Iterator, List, Optional, Union

PHONY_TARGET = ".PHONY"

_DIRECTIVES = frozenset(
    [
        "define",
        "else",
        "endef",
        "endif",
        "export",
        "ifdef",
        "ifeq",
        "ifndef",
        "ifneq",
        "include",
        "-include",
        "sinclude",
        "override",
        "unexport",
        "vpath",
    ]
)


def _is_continued(line: str) -> bool:
    return line.rstrip("\r\n").endswith("\\")


def _is_recipe_filler(line: str) -> bool:
    return line.isspace() or line.startswith("#")


def _is_rule_header(line: str) -> bool:
    if line.startswith("\t") or line.isspace() or line.startswith("#"):
        return False
    try:
        colon_idx = line.index(":")
    except ValueError:
        return False
    if line[colon_idx + 1 : colon_idx + 2] == "=":
        return False
    if line[colon_idx + 1 : colon_idx + 3] == ":=":
        return False
    target_substring = line[0:colon_idx]
    if "=" in target_substring:
        return False
    words = target_substring.split()
    if not words or words[0] in _DIRECTIVES:
        return False
    return True


class Rule:
    """A rule: its header line(s) followed by its recipe lines"""

    __slots__ = ("_lines", "_header_length")

    def __init__(self, lines: List[str], header_length: int = 1) -> None:
        self._lines = lines
        self._header_length = header_length

    @property
    def lines(self) -> List[str]:
        return self._lines

    def _header(self) -> str:
        header = "".join(self._lines[: self._header_length])
        return re.sub(r"\\\r?\n", " ", header)

    def _split_header(self) -> "tuple[str, str, Optional[str]]":
        header = self._header().rstrip("\r\n")
        colon_idx = header.index(":")
        targets = header[:colon_idx]
        rest = header[colon_idx + 1 :]
        if rest.startswith(":"):
            rest = rest[1:]
        inline_recipe = None
        if ";" in rest:
            rest, inline_recipe = rest.split(";", 1)
        if "#" in rest:
            rest = rest.split("#", 1)[0]
        return targets, rest, inline_recipe

    @property
    def targets(self) -> List[str]:
        return self._split_header()[0].split()

    @property
    def is_double_colon(self) -> bool:
        header = self._header()
        colon_idx = header.index(":")
        return header[colon_idx + 1 : colon_idx + 2] == ":"

    @property
    def prerequisites(self) -> List[str]:
        return [p for p in self._split_header()[1].split() if p != "|"]

    def _body_indices(self) -> Iterator[int]:
        yield from range(self._header_length, len(self._lines))

    @property
    def recipes(self) -> List[str]:
        """The recipe lines without their leading tab; comments are left out"""
        recipes = []
        inline_recipe = self._split_header()[2]
        if inline_recipe is not None and inline_recipe.strip():
            recipes.append(inline_recipe.strip())
        for i in self._body_indices():
            line = self._lines[i]
            if not line.startswith("\t") and _is_recipe_filler(line):
                continue
            text = line.rstrip("\r\n")
            if text.startswith("\t"):
                text = text[1:]
            if text.strip().startswith("#"):
                continue
            recipes.append(text)
        return recipes

    def map_recipe_lines(self, transform: Callable[[str], str]) -> bool:
        changed = False
        for i in self._body_indices():
            line = self._lines[i]
            if not line.startswith("\t") or line.strip().startswith("#"):
                continue
            body = line[1:]
            newline = body[len(body.rstrip("\r\n")) :]
            text = body[: len(body) - len(newline)]
            new_text = transform(text)
            if new_text != text:
                self._lines[i] = f"\t{new_text}{newline}"
                changed = True
        return changed

    def _remove_prerequisite(self, name: str) -> bool:
        pattern = re.compile(rf"([:\s])[ \t]*{re.escape(name)}(?=[\s\\;#|]|$)")
        for i in range(self._header_length):
            line = self._lines[i]
            start = line.index(":") if i == 0 else 0
            m = pattern.search(line, start)
            if m is None:
                continue
            keep = m.group(1) if m.group(1) == ":" else ""
            self._lines[i] = line[: m.start()] + keep + line[m.end() :]
            return True
        return False

    def __str__(self) -> str:
        return "".join(self._lines)

    def __repr__(self) -> str:
        return f"Rule(targets={self.targets!r})"


class Makefile:
    __slots__ = ("_elements",)

    def __init__(self, elements: List[Union[str, Rule]]) -> None:
        self._elements = elements

    @classmethod
    def from_lines(cls, lines: List[str]) -> "Makefile":
        elements: List[Union[str, Rule]] = []
        i = 0
        n = len(lines)
        while i < n:
            line = lines[i]
            i += 1
            if not _is_rule_header(line):
                elements.append(line)
                while _is_continued(line) and i < n:
                    line = lines[i]
                    i += 1
                    elements.append(line)
                continue
            rule_lines = [line]
            while _is_continued(rule_lines[-1]) and i < n:
                rule_lines.append(lines[i])
                i += 1
            header_length = len(rule_lines)
            while i < n:
                # Blank and comment lines do not end a recipe if it continues
                j = i
                while j < n and _is_recipe_filler(lines[j]):
                    j += 1
                if j >= n or not lines[j].startswith("\t"):
                    break
                rule_lines.extend(lines[i : j + 1])
                i = j + 1
                while _is_continued(rule_lines[-1]) and i < n:
                    rule_lines.append(lines[i])
                    i += 1
            elements.append(Rule(rule_lines, header_length))
        return cls(elements)

    @classmethod
    def from_text(cls, text: str) -> "Makefile":
        return cls.from_lines(text.splitlines(keepends=True))

    @property
    def rules(self) -> List[Rule]:
        return [e for e in self._elements if isinstance(e, Rule)]

    def find_rules(self, target: str) -> List[Rule]:
        return [r for r in self.rules if target in r.targets]

    def drop_rule(self, rule: Rule) -> None:
        """Remove a rule

        If the rule was separated from its surroundings by a blank line and
        removing it would leave two blank lines in a row (or a blank line at
        the end of the file), the preceding blank line goes as well.
        """
        index = next(i for i, e in enumerate(self._elements) if e is rule)
        del self._elements[index]
        if index > 0 and self._is_blank(index - 1):
            if index == len(self._elements) or self._is_blank(index):
                del self._elements[index - 1]

    def _is_blank(self, index: int) -> bool:
        element = self._elements[index]
        return isinstance(element, str) and element.strip() == ""

    @property
    def phony_targets(self) -> List[str]:
        return [t for r in self.find_rules(PHONY_TARGET) for t in r.prerequisites]

    def drop_phony(self, target: str) -> bool:
        changed = False
        for rule in self.find_rules(PHONY_TARGET):
            if target not in rule.prerequisites:
                continue
            if all(p == target for p in rule.prerequisites):
                self.drop_rule(rule)
            else:
                while target in rule.prerequisites:
                    if not rule._remove_prerequisite(target):
                        break
            changed = True
        return changed

    def add_phony(self, target: str) -> bool:
        if target in self.phony_targets:
            return False
        phony_rules = self.find_rules(PHONY_TARGET)
        if phony_rules:
            rule = phony_rules[0]
            first = rule.lines[0]
            content = first.rstrip("\r\n")
            rule.lines[0] = f"{content} {target}{first[len(content):]}"
            return True
        if self._elements:
            last = self._elements[-1]
            if isinstance(last, Rule):
                if not last.lines[-1].endswith("\n"):
                    last.lines[-1] += "\n"
            elif not last.endswith("\n"):
                self._elements[-1] = last + "\n"
        self._elements.append(Rule([f"{PHONY_TARGET}: {target}\n"]))
        return True

    def __str__(self) -> str:
        return "".join(str(e) for e in self._elements)
