"""Pytest-based parser tests.

Cases live in 02_parse/*.tests. Expected is `ok` or `error: <substring>`.
An input starting with `source-type: script` is parsed as a classic script.
"""

import signal
from pathlib import Path

import pytest

from cases import Case, discover, split_directives
from unclosure.frontend.parse import ParseError, parse
from unclosure.frontend.tokens import TokenizeError

PARSE_TIMEOUT = 5


def _timeout_handler(signum, frame):
    raise TimeoutError("parse() timed out")


signal.signal(signal.SIGALRM, _timeout_handler)

PARSE_DIR = Path(__file__).parent / "02_parse"


def pytest_generate_tests(metafunc):
    if "parse_case" in metafunc.fixturenames:
        cases = discover(PARSE_DIR)
        metafunc.parametrize("parse_case", [pytest.param(c, id=c.id) for c in cases])


def test_parse(parse_case: Case):
    directives, body = split_directives(parse_case.input_lines, ("source-type",))
    source_type = directives.get("source-type", "module")
    expected = parse_case.expected
    error: Exception | None = None
    try:
        signal.alarm(PARSE_TIMEOUT)
        parse("\n".join(body), source_type=source_type)
    except (ParseError, TokenizeError) as e:
        error = e
    finally:
        signal.alarm(0)

    if expected == "ok":
        if error is not None:
            pytest.fail(f"Expected ok, got parse error: {error}")
    elif expected.startswith("error:"):
        expected_msg = expected[6:].strip()
        if error is None:
            pytest.fail(f"Expected error containing '{expected_msg}', but parsing succeeded")
        assert expected_msg.lower() in str(error).lower()
    else:
        pytest.fail(f"Unknown expected format: {expected}")
