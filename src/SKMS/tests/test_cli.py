# src/SKMS/tests/test_cli.py
from click.testing import CliRunner

from SKMS.cli import cli
from SKMS.core.config import settings


def test_init_db_then_dispatch_and_token(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    # keep the JSON handlers pointed at pytest, not at the runner's temporary stream
    monkeypatch.setattr("SKMS.cli.setup_logging", lambda level=None: None)
    runner = CliRunner()

    result = runner.invoke(cli, ["init-db"])
    assert result.exit_code == 0, result.output
    assert "Tables created" in result.output

    result = runner.invoke(cli, ["dispatch-once"])
    assert result.exit_code == 0, result.output
    assert "Dispatcher pass" in result.output

    result = runner.invoke(cli, ["issue-token", "nobody@bitsathy.ac.in"])
    assert result.exit_code == 1
    assert "No user with email" in result.output
