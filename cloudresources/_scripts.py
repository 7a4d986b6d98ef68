"""Developer tasks exposed as project scripts. Use: uv run <script-name> (see pyproject.toml)."""

import subprocess
import sys

SOURCES = ["cloudresources", "tests"]


def _module(name: str, *args: str) -> list[str]:
    return [sys.executable, "-m", name, *args]


def _run(*commands: list[str]) -> None:
    """Run commands in order, stopping at the first failure; exit with its code."""
    for cmd in commands:
        code = subprocess.run(cmd).returncode
        if code != 0:
            sys.exit(code)
    sys.exit(0)


def lint() -> None:
    """ruff check over sources and tests."""
    _run(_module("ruff", "check", *SOURCES))


def lint_fix() -> None:
    _run(_module("ruff", "check", "--fix", *SOURCES))


def format() -> None:
    _run(_module("ruff", "format", *SOURCES))


def type_check() -> None:
    """pyright over the package only; tests lean on MagicMock."""
    _run(_module("pyright", "cloudresources"))


def test() -> None:
    _run(_module("pytest", "tests/", "-v"))


def test_cov() -> None:
    """pytest with a missing-lines coverage report for the package."""
    _run(_module("pytest", "tests/", "--cov=cloudresources", "--cov-report=term-missing", "-v"))


def check() -> None:
    """Lint, type check, then test: the gate run before pushing."""
    _run(
        _module("ruff", "check", *SOURCES),
        _module("pyright", "cloudresources"),
        _module("pytest", "tests/", "-q"),
    )
