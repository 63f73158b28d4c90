"""CLI tests for the unclosure entry point.

Test cases live in 01_cli/*.tests files. Input section: an `args:` line,
optionally `stdin-bytes:` (hex) instead of source text. Expected section:

    exit: N             exact exit code
    exit-not: N         exit code must NOT equal this
    stderr: TEXT        exact stderr content (trailing newline stripped)
    stderr-contains: S
    stderr-empty: true
    stdout-contains: S
    stdout-absent: S
    stdout-empty: true
"""

import subprocess
import sys
from pathlib import Path

import pytest

from cases import Case, discover

CLI_DIR = Path(__file__).parent / "01_cli"
REPO_DIR = Path(__file__).parent.parent


def _stdin(case: Case) -> bytes:
    lines = case.input_lines
    if lines and lines[0].startswith("args:"):
        lines = lines[1:]
    if lines and lines[0].startswith("stdin-bytes:"):
        return bytes.fromhex(lines[0][len("stdin-bytes:") :].strip())
    return "\n".join(lines).encode()


def _args(case: Case) -> list[str]:
    if case.input_lines and case.input_lines[0].startswith("args:"):
        return case.input_lines[0][5:].split()
    return []


def _assertions(case: Case) -> list[tuple[str, str]]:
    result: list[tuple[str, str]] = []
    for line in case.expected_lines:
        line = line.strip()
        if not line:
            continue
        key, _, value = line.partition(":")
        result.append((key.strip(), value.strip()))
    return result


def run_cli(case: Case) -> subprocess.CompletedProcess[bytes]:
    cmd = [sys.executable, "-m", "unclosure", *_args(case)]
    return subprocess.run(cmd, input=_stdin(case), capture_output=True, cwd=REPO_DIR)


def check_assertions(result: subprocess.CompletedProcess[bytes], assertions: list[tuple[str, str]]) -> None:
    stdout = result.stdout.decode(errors="replace")
    stderr = result.stderr.decode(errors="replace")
    for kind, value in assertions:
        if kind == "exit":
            assert result.returncode == int(value), (
                f"expected exit {value}, got {result.returncode}\nstderr: {stderr}"
            )
        elif kind == "exit-not":
            assert result.returncode != int(value), f"expected exit != {value}"
        elif kind == "stderr":
            assert stderr.rstrip("\n") == value, f"expected stderr {value!r}, got {stderr!r}"
        elif kind == "stderr-contains":
            assert value in stderr, f"expected stderr to contain {value!r}, got {stderr!r}"
        elif kind == "stderr-empty":
            assert stderr == "", f"expected empty stderr, got {stderr!r}"
        elif kind == "stdout-contains":
            assert value in stdout, f"expected stdout to contain {value!r}, got {stdout!r}"
        elif kind == "stdout-absent":
            assert value not in stdout, f"expected stdout not to contain {value!r}, got {stdout!r}"
        elif kind == "stdout-empty":
            assert stdout == "", f"expected empty stdout, got {stdout[:200]!r}"
        else:
            pytest.fail(f"unknown assertion {kind!r}")


def pytest_generate_tests(metafunc):
    if "cli_case" in metafunc.fixturenames:
        cases = discover(CLI_DIR)
        metafunc.parametrize("cli_case", [pytest.param(c, id=c.id) for c in cases])


def test_cli(cli_case: Case) -> None:
    result = run_cli(cli_case)
    check_assertions(result, _assertions(cli_case))
