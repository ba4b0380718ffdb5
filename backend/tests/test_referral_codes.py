"""Referral code issuance."""

import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from threading import Barrier

from sqlalchemy import text

from superintern.auth.points import PointService
from superintern.auth.profiles import ProfileService
from superintern.referral import service as referral_module
from superintern.referral.models import ReferralCode
from superintern.referral.service import ReferralService, generate_referral_code, normalize_code
from superintern.storage.db import Database


def _codes(db, user_id):
    with db.session() as session:
        return [
            row.code for row in session.query(ReferralCode).filter(
                ReferralCode.user_id == user_id
            ).all()
        ]


def test_generated_code_format():
    code = generate_referral_code()
    assert re.fullmatch(r"[0-9A-Z]{8}", code)


def test_normalize_code():
    assert normalize_code("  xyz123ab ") == "XYZ123AB"
    assert normalize_code(None) == ""


def test_ensure_code_issues_once(services, make_profile, db):
    make_profile("user_a")

    first = services.referrals.ensure_code("user_a")
    second = services.referrals.ensure_code("user_a")

    assert first is not None
    assert first == second
    assert _codes(db, "user_a") == [first]


def test_ensure_code_retries_on_collision(services, make_profile, give_code, db, monkeypatch):
    make_profile("owner")
    make_profile("newcomer")
    give_code("owner", "TAKEN001")

    generated = iter(["TAKEN001", "FRESH002"])
    monkeypatch.setattr(referral_module, "generate_referral_code", lambda: next(generated))

    assert services.referrals.ensure_code("newcomer") == "FRESH002"
    assert _codes(db, "owner") == ["TAKEN001"]


def test_ensure_code_gives_up_after_bounded_attempts(services, make_profile, give_code, monkeypatch):
    make_profile("owner")
    make_profile("unlucky")
    give_code("owner", "TAKEN001")

    monkeypatch.setattr(referral_module, "generate_referral_code", lambda: "TAKEN001")

    assert services.referrals.ensure_code("unlucky") is None


def test_legacy_duplicates_are_reconciled(services, make_profile, db):
    make_profile("legacy")

    # Databases created before the unique index may hold several codes per user
    with db.engine.begin() as conn:
        conn.execute(text("DROP INDEX ix_referral_codes_user_id"))

    now = datetime.utcnow()
    with db.session() as session:
        session.add(ReferralCode(user_id="legacy", code="NEWER002", created_at=now))
        session.add(ReferralCode(user_id="legacy", code="OLDEST01", created_at=now - timedelta(days=3)))
        session.add(ReferralCode(user_id="legacy", code="MIDDLE03", created_at=now - timedelta(days=1)))
        session.commit()

    assert services.referrals.ensure_code("legacy") == "OLDEST01"
    assert _codes(db, "legacy") == ["OLDEST01"]


def test_share_link_uses_site_url(services):
    assert services.referrals.share_link("ABC12345").endswith("/signup?ref=ABC12345")


def test_concurrent_issue_leaves_one_code(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'codes.db'}")
    db.create_tables()
    profiles = ProfileService(db)
    referrals = ReferralService(db, profiles, PointService(db))
    profiles.upsert_profile("racer", "racer@example.com")

    barrier = Barrier(2)

    def issue():
        barrier.wait()
        return referrals.ensure_code("racer")

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(lambda _: issue(), range(2)))

    stored = _codes(db, "racer")
    db.dispose()

    assert len(stored) == 1
    assert results == [stored[0], stored[0]]
