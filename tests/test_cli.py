"""CLI tests: argument handling only; no server is contacted."""

from click.testing import CliRunner

from foxboard import __version__
from foxboard.cli.main import main


def test_version():
    result = CliRunner().invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_commands_listed():
    result = CliRunner().invoke(main, ["--help"])
    assert result.exit_code == 0
    for command in ("serve", "init-db", "login", "whoami", "projects"):
        assert command in result.output


def test_whoami_requires_token():
    result = CliRunner().invoke(main, ["whoami"], env={"FOXBOARD_TOKEN": None})
    assert result.exit_code == 1
    assert "FOXBOARD_TOKEN" in result.output
