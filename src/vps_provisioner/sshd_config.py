"""Structured editing of sshd_config style files."""

import re
from typing import List, Optional, Tuple

_DIRECTIVE_RE = re.compile(
    r"^(?P<indent>\s*)(?P<comment>#?)(?P<key>[A-Za-z][A-Za-z0-9]*)\s+(?P<value>\S.*?)\s*$"
)


class DirectiveMap:
    """Keyword/value view over an sshd configuration file.

    Only the global section (everything before the first ``Match`` block)
    is edited. Lines that are not directives are carried through untouched.
    A commented directive only counts when the keyword follows ``#``
    directly (``#Port 22``), which is how the stock config ships defaults.
    """

    def __init__(self, lines: List[str]) -> None:
        self.lines = lines

    @classmethod
    def parse(cls, text: str) -> "DirectiveMap":
        return cls(text.splitlines())

    def serialize(self) -> str:
        return "\n".join(self.lines) + "\n"

    @staticmethod
    def _split(line: str) -> Optional[Tuple[bool, str, str]]:
        """Return (active, key, value) for a directive line."""
        match = _DIRECTIVE_RE.match(line)
        if not match:
            return None
        return not match.group("comment"), match.group("key"), match.group("value")

    def _global_end(self) -> int:
        for index, line in enumerate(self.lines):
            parsed = self._split(line)
            if parsed and parsed[0] and parsed[1].lower() == "match":
                return index
        return len(self.lines)

    def get(self, key: str) -> Optional[str]:
        """Return the effective global value of ``key``, if set."""
        for line in self.lines[: self._global_end()]:
            parsed = self._split(line)
            if parsed and parsed[0] and parsed[1].lower() == key.lower():
                return parsed[2]
        return None

    def items(self) -> List[Tuple[str, str]]:
        """Active global directives in file order."""
        result = []
        for line in self.lines[: self._global_end()]:
            parsed = self._split(line)
            if parsed and parsed[0]:
                result.append((parsed[1], parsed[2]))
        return result

    def set(self, key: str, value: str) -> None:
        """Set a global directive.

        The first active occurrence is replaced in place; failing that, the
        first commented one is uncommented. Further active occurrences are
        removed since sshd honours only the first. A directive not present
        at all is inserted ahead of the first ``Match`` block.
        """
        end = self._global_end()
        active: List[int] = []
        commented: List[int] = []
        for index in range(end):
            parsed = self._split(self.lines[index])
            if parsed and parsed[1].lower() == key.lower():
                (active if parsed[0] else commented).append(index)

        directive = f"{key} {value}"
        if not active and not commented:
            self.lines.insert(end, directive)
            return

        target = active[0] if active else commented[0]
        duplicates = set(active) - {target}
        new_lines = []
        for index, line in enumerate(self.lines):
            if index == target:
                new_lines.append(directive)
            elif index not in duplicates:
                new_lines.append(line)
        self.lines = new_lines
