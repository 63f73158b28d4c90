"""Reader for the data-driven `.tests` fixture format.

    === test name
    input lines
    ---
    expected lines
    ---
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass
class Case:
    id: str
    input_lines: list[str]
    expected_lines: list[str]

    @property
    def input(self) -> str:
        return "\n".join(self.input_lines)

    @property
    def expected(self) -> str:
        return "\n".join(self.expected_lines).strip()


def read_cases(path: Path) -> list[Case]:
    lines = path.read_text().split("\n")
    result: list[Case] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if not line.startswith("=== "):
            i += 1
            continue
        name = line[4:].strip()
        i += 1
        input_lines: list[str] = []
        while i < len(lines) and not lines[i].startswith("---"):
            input_lines.append(lines[i])
            i += 1
        if i < len(lines) and lines[i] == "---":
            i += 1
        expected_lines: list[str] = []
        while i < len(lines) and not lines[i].startswith("---"):
            expected_lines.append(lines[i])
            i += 1
        if i < len(lines) and lines[i] == "---":
            i += 1
        result.append(Case(f"{path.stem}/{name}", input_lines, expected_lines))
    return result


def discover(directory: Path) -> list[Case]:
    """All cases from every .tests file in directory, in file order."""
    results: list[Case] = []
    for test_file in sorted(directory.glob("*.tests")):
        results.extend(read_cases(test_file))
    return results


def split_directives(lines: list[str], names: tuple[str, ...]) -> tuple[dict[str, str], list[str]]:
    """Pull leading `name: value` lines off the front of lines."""
    found: dict[str, str] = {}
    i = 0
    while i < len(lines):
        key, sep, value = lines[i].partition(":")
        if not sep or key.strip() not in names:
            break
        found[key.strip()] = value.strip()
        i += 1
    return found, lines[i:]
