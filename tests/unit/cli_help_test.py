"""Tests that -h is accepted as a help flag on all CLI commands."""

import pytest
from typer.testing import CliRunner

from filehub.cli.app import app

runner = CliRunner()


@pytest.mark.parametrize(
    "args",
    [
        [],
        ["files"],
        ["files", "add"],
        ["folders"],
        ["share"],
        ["sync"],
        ["usage"],
        ["remote"],
        ["remote", "register"],
        ["serve"],
    ],
    ids=["root", "files", "files-add", "folders", "share", "sync", "usage", "remote", "remote-register", "serve"],
)
def test_short_help_flag(args: list[str]) -> None:
    result = runner.invoke(app, [*args, "-h"])
    assert result.exit_code == 0
    assert "Usage" in result.output
