"""Nox sessions for AudioDeck development tasks."""

from __future__ import annotations

from pathlib import Path

import nox


ROOT = Path(__file__).parent
PACKAGE = "audio_deck"

nox.options.error_on_missing_interpreters = False
nox.options.sessions = ["lint", "typecheck", "tests"]


def _has_mypy_config() -> bool:
    pyproject = ROOT / "pyproject.toml"
    if (ROOT / "mypy.ini").is_file():
        return True
    return pyproject.is_file() and "[tool.mypy]" in pyproject.read_text(
        encoding="utf-8"
    )


@nox.session
def lint(session: nox.Session) -> None:
    """Run ruff linting and formatting checks."""
    session.install("ruff")
    session.run("ruff", "check", ".")
    session.run("ruff", "format", "--check", ".")


@nox.session(name="lint-fix")
def lint_fix(session: nox.Session) -> None:
    """Apply ruff fixes and formatting."""
    session.install("ruff")
    session.run("ruff", "check", "--fix", ".")
    session.run("ruff", "format", ".")


@nox.session
def tests(session: nox.Session) -> None:
    """Run pytest without the libvlc-backed tests."""
    session.install("-e", ".[dev]")
    session.run("pytest", "-q", *session.posargs, env={"AUDIO_DECK_CI": "1"})


@nox.session(name="tests-vlc")
def tests_vlc(session: nox.Session) -> None:
    """Run the full suite, including tests that need a local libvlc."""
    session.install("-e", ".[dev]")
    session.run("pytest", "-q", *session.posargs)


@nox.session
def typecheck(session: nox.Session) -> None:
    """Run mypy when a config is present."""
    if not _has_mypy_config():
        session.skip("mypy config not found")
    session.install("-e", ".", "mypy")
    session.run("mypy", f"src/{PACKAGE}")


@nox.session
def coverage(session: nox.Session) -> None:
    """Run coverage reporting."""
    session.install("-e", ".[dev]", "coverage")
    session.run(
        "coverage",
        "run",
        f"--source={PACKAGE}",
        "-m",
        "pytest",
        env={"AUDIO_DECK_CI": "1"},
    )
    session.run("coverage", "report", "--fail-under=80", "-m")


@nox.session
def build(session: nox.Session) -> None:
    """Build sdist and wheel artifacts."""
    session.install("build")
    session.run("python", "-m", "build")
