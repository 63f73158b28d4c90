"""Closure hoisting scenarios, end to end.

Cases live in 05_hoist/*.tests. The input may start with directives:

    source-type: script     parse as a classic script (default module)
    run: no                 do not execute (generators, async functions)

Expected section:

    hoisted: N      number of closures relocated
    result: X       display of the completion value, before and after
    contains: S     printed output must contain S
    absent: S       printed output must not contain S

Every case is also checked for equivalence (same value and console output
before and after) and idempotence (hoisting the printed output again moves
nothing).
"""

from pathlib import Path

import pytest

from cases import Case, discover, split_directives
from unclosure.backend.javascript import emit
from unclosure.frontend.parse import parse
from unclosure.middleend import transform
from unclosure.runtime import display, run

HOIST_DIR = Path(__file__).parent / "05_hoist"


def pytest_generate_tests(metafunc):
    if "hoist_case" in metafunc.fixturenames:
        cases = discover(HOIST_DIR)
        metafunc.parametrize("hoist_case", [pytest.param(c, id=c.id) for c in cases])


def _expectations(case: Case) -> list[tuple[str, str]]:
    result: list[tuple[str, str]] = []
    for line in case.expected_lines:
        if not line.strip():
            continue
        key, _, value = line.partition(":")
        result.append((key.strip(), value.strip()))
    return result


def test_hoist(hoist_case: Case) -> None:
    directives, body = split_directives(hoist_case.input_lines, ("source-type", "run"))
    source = "\n".join(body)
    source_type = directives.get("source-type", "module")
    executes = directives.get("run", "yes") != "no"

    program = parse(source, source_type=source_type)
    before = run(program) if executes else None
    moved = transform(program)
    printed = emit(program)

    for kind, value in _expectations(hoist_case):
        if kind == "hoisted":
            assert moved.count == int(value), f"expected {value} hoisted, got {moved.count}\n{printed}"
        elif kind == "result":
            assert before is not None
            assert display(before.value) == value
        elif kind == "contains":
            assert value in printed, f"expected output to contain {value!r}\n{printed}"
        elif kind == "absent":
            assert value not in printed, f"expected output not to contain {value!r}\n{printed}"
        else:
            pytest.fail(f"unknown expectation {kind!r}")

    reparsed = parse(printed, source_type=source_type)
    if before is not None:
        after = run(reparsed)
        assert display(after.value) == display(before.value)
        assert after.output == before.output
    again = transform(reparsed)
    assert again.count == 0, f"second run moved {again.count} closure(s)\n{printed}"
