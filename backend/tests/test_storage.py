"""Store retry and point ledger."""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from superintern.storage.retry import store_retry


def _operational():
    return OperationalError("UPDATE profiles", {}, Exception("database is locked"))


def test_retry_recovers_from_transient_errors():
    calls = []

    @store_retry("flaky", max_attempts=3, base_delay=0)
    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise _operational()
        return "ok"

    assert flaky() == "ok"
    assert len(calls) == 3


def test_retry_is_bounded():
    calls = []

    @store_retry("down", max_attempts=2, base_delay=0)
    def down():
        calls.append(1)
        raise _operational()

    with pytest.raises(OperationalError):
        down()
    assert len(calls) == 2


def test_integrity_errors_are_not_retried():
    calls = []

    @store_retry("dup", max_attempts=5, base_delay=0)
    def dup():
        calls.append(1)
        raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

    with pytest.raises(IntegrityError):
        dup()
    assert len(calls) == 1


def test_points_are_incremented_and_ledgered(services, make_profile):
    make_profile("intern")

    assert services.points.add_points("intern", 10, reference="bonus:1").balance_after == 10
    assert services.points.add_points("intern", 5).balance_after == 15
    assert services.points.get_balance("intern") == 15

    history = services.points.get_history("intern")
    assert sorted(t.balance_after for t in history) == [10, 15]


def test_points_reject_non_positive_amounts(services, make_profile):
    make_profile("intern")

    with pytest.raises(ValueError):
        services.points.add_points("intern", 0)


def test_points_for_unknown_profile(services):
    with pytest.raises(ValueError):
        services.points.add_points("nobody", 10)


def test_store_errors_become_503(client, auth_headers, make_profile, services, monkeypatch):
    make_profile("intern")

    def broken(*args, **kwargs):
        raise _operational()

    monkeypatch.setattr(services.tasks, "list_open_tasks", broken)

    response = client.get("/api/v1/tasks/open", headers=auth_headers("intern"))

    assert response.status_code == 503
    assert "database is locked" not in response.text
