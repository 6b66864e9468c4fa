"""Nox sessions."""

import os
import shutil
import sys
from pathlib import Path
from textwrap import dedent

try:
    import nox
    from nox import Session
    from nox import session
except ImportError:
    message = f"""\
    Nox failed to import.

    Please install it using the following command:

    {sys.executable} -m pip install nox[uv]"""
    raise SystemExit(dedent(message)) from None

package = "arrowext"
python_versions = ["3.13", "3.12", "3.11"]
nox.needs_version = ">=2025.2.9"
nox.options.default_venv_backend = "uv"
nox.options.sessions = ("mypy", "tests", "typeguard", "xdoctest", "docs-build")

DOCS_BUILD_DIR = Path("docs", "_build")


def _uv_env(session: Session) -> dict[str, str]:
    return {"UV_PROJECT_ENVIRONMENT": session.virtualenv.location}


def sync_project(session: Session, *groups: str) -> None:
    """Sync arrowext and its runtime dependencies, plus the given dependency groups."""
    group_args = [f"--group={group}" for group in groups]
    session.run_install("uv", "sync", "--no-dev", *group_args, silent=True, env=_uv_env(session))


def install_dev_tools(session: Session, *tools: str) -> None:
    """Install tools pinned to the versions of the ``dev`` dependency group."""
    constraints = Path(session.create_tmp()) / "dev-constraints.txt"
    session.run_install(
        "uv", "export", "--only-dev", "--no-hashes", f"--output-file={constraints}", silent=True, env=_uv_env(session)
    )
    session.install(*tools, "--constraint", str(constraints))


def clean_docs_build() -> None:
    """Remove a previous documentation build."""
    if DOCS_BUILD_DIR.exists():
        shutil.rmtree(DOCS_BUILD_DIR)


@session(python=python_versions)
def mypy(session: Session) -> None:
    """Type-check using mypy."""
    args = session.posargs or ["src", "tests", "docs/conf.py"]
    sync_project(session)
    install_dev_tools(session, "mypy", "pytest", "pyarrow-stubs")
    session.run("mypy", *args)
    if not session.posargs:
        session.run("mypy", f"--python-executable={sys.executable}", "noxfile.py")


@session(python=python_versions)
def tests(session: Session) -> None:
    """Run the test suite."""
    sync_project(session)
    install_dev_tools(session, "coverage[toml]", "pytest", "pygments")

    try:
        session.run("coverage", "run", "--parallel", "-m", "pytest", *session.posargs)
    finally:
        if session.interactive:
            session.notify("coverage", posargs=[])


@session(python=python_versions[0])
def coverage(session: Session) -> None:
    """Produce the coverage report."""
    args = session.posargs or ["report"]
    install_dev_tools(session, "coverage[toml]")

    if not session.posargs and any(Path().glob(".coverage.*")):
        session.run("coverage", "combine")

    session.run("coverage", *args)


@session(python=python_versions[0])
def typeguard(session: Session) -> None:
    """Runtime type checking using Typeguard."""
    sync_project(session)
    install_dev_tools(session, "pytest", "typeguard", "pygments")
    session.run("pytest", f"--typeguard-packages={package}", *session.posargs)


@session(python=python_versions)
def xdoctest(session: Session) -> None:
    """Run examples with xdoctest."""
    if session.posargs:
        args = [package, *session.posargs]
    else:
        args = [f"--modname={package}", "--command=all"]
        if "FORCE_COLOR" in os.environ:
            args.append("--colored=1")

    sync_project(session)
    install_dev_tools(session, "xdoctest[colors]")
    session.run("python", "-m", "xdoctest", *args)


@session(name="docs-build", python=python_versions[0])
def docs_build(session: Session) -> None:
    """Build the documentation."""
    args = session.posargs or ["docs", str(DOCS_BUILD_DIR)]
    if not session.posargs and "FORCE_COLOR" in os.environ:
        args.insert(0, "--color")

    sync_project(session, "docs")
    clean_docs_build()
    session.run("sphinx-build", *args)


@session(python=python_versions[0])
def docs(session: Session) -> None:
    """Build and serve the documentation with live reloading on file changes."""
    args = session.posargs or ["--open-browser", "docs", str(DOCS_BUILD_DIR)]
    sync_project(session, "docs")
    clean_docs_build()
    session.run("sphinx-autobuild", *args)
