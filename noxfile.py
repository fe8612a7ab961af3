import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13"]


def _install(session: nox.Session) -> None:
    session.run("poetry", "install", "--all-extras", external=True)


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Whole suite; extra arguments go to pytest (``nox -s tests -- -m integration``)."""
    _install(session)
    session.run("pytest", *session.posargs)


@nox.session(python=PYTHON_VERSIONS[-1])
def fast(session: nox.Session) -> None:
    """Domain rules and feature scenarios, no command service or HTTP."""
    _install(session)
    session.run("pytest", "-m", "domain or bdd", *session.posargs)
