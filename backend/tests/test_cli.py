"""Command-line interface against a temporary SQLite file."""

import pytest
from typer.testing import CliRunner

from superintern.auth.profiles import ProfileService
from superintern.cli import app
from superintern.referral.models import ReferralCode
from superintern.settings import settings
from superintern.storage.db import Database

runner = CliRunner()


@pytest.fixture
def cli_db(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setattr(settings, "database_url", url)

    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0

    database = Database(url)
    ProfileService(database).upsert_profile("user_1", "one@example.com")
    yield database
    database.dispose()


def test_issue_code_prints_stored_code(cli_db):
    result = runner.invoke(app, ["issue-code", "user_1"])

    assert result.exit_code == 0
    with cli_db.session() as session:
        code = session.query(ReferralCode.code).filter(ReferralCode.user_id == "user_1").scalar()
    assert code in result.output

    again = runner.invoke(app, ["issue-code", "user_1"])
    assert code in again.output


def test_issue_code_unknown_user(cli_db):
    result = runner.invoke(app, ["issue-code", "nobody"])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_make_admin(cli_db):
    result = runner.invoke(app, ["make-admin", "One@Example.com"])

    assert result.exit_code == 0
    assert ProfileService(cli_db).get_profile("user_1").is_admin is True


def test_make_admin_unknown_email(cli_db):
    result = runner.invoke(app, ["make-admin", "ghost@example.com"])

    assert result.exit_code == 1
    assert ProfileService(cli_db).get_profile("user_1").is_admin is False
