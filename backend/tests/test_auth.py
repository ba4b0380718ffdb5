"""Session tokens, profile endpoints and access control."""

from datetime import timedelta

from superintern.auth.tokens import SessionTokenService


def test_token_roundtrip_with_metadata():
    tokens = SessionTokenService(secret="test-secret", audience="authenticated")
    token = tokens.create_access_token(
        "user_1",
        email="one@example.com",
        user_metadata={"given_name": "Grace", "family_name": "Hopper"},
    )

    identity = tokens.verify_token(token)

    assert identity.user_id == "user_1"
    assert identity.email == "one@example.com"
    assert (identity.first_name, identity.last_name) == ("Grace", "Hopper")


def test_token_rejected_on_wrong_secret_or_expiry():
    issuer = SessionTokenService(secret="one-secret")
    verifier = SessionTokenService(secret="another-secret")

    assert verifier.verify_token(issuer.create_access_token("user_1")) is None
    assert issuer.verify_token(issuer.create_access_token("user_1", expires_delta=timedelta(seconds=-5))) is None
    assert issuer.verify_token("not-a-token") is None


def test_missing_token_is_401(client):
    response = client.get("/api/v1/profile")

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_token_without_profile_is_404(client, auth_headers):
    assert client.get("/api/v1/profile", headers=auth_headers("ghost")).status_code == 404


def test_upsert_and_read_profile(client, auth_headers):
    headers = auth_headers("user_1")

    created = client.post(
        "/api/v1/profile",
        json={"firstName": "Grace", "university": "Yale", "graduationYear": 2027},
        headers=headers,
    )
    assert created.status_code == 200

    client.post("/api/v1/profile", json={"major": "Mathematics"}, headers=headers)
    profile = client.get("/api/v1/profile", headers=headers).json()

    assert profile["email"] == "user_1@example.com"
    assert profile["first_name"] == "Grace"
    assert profile["university"] == "Yale"
    assert profile["major"] == "Mathematics"
    assert profile["graduation_year"] == 2027
    assert profile["points"] == 0
    assert profile["referral_code"]


def test_callback_creates_profile_and_code(client, services):
    token = services.tokens.create_access_token(
        "user_2",
        email="Two@Example.com",
        user_metadata={"given_name": "Alan"},
    )

    response = client.post("/api/v1/auth/callback", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    body = response.json()
    assert body["created"] is True
    assert body["profile"]["email"] == "two@example.com"
    assert body["profile"]["first_name"] == "Alan"
    assert body["referral_code"] == services.referrals.ensure_code("user_2")


def test_callback_keeps_existing_names(client, auth_headers, make_profile):
    make_profile("user_3", first_name="Barbara", last_name="Liskov")

    body = client.post("/api/v1/auth/callback", headers=auth_headers("user_3")).json()

    assert body["created"] is False
    assert body["profile"]["first_name"] == "Barbara"
    assert body["profile"]["last_name"] == "Liskov"


def test_suspended_user_is_blocked_but_can_read_profile(client, auth_headers, make_profile, services):
    make_profile("admin", is_admin=True)
    make_profile("intern")

    response = client.patch(
        "/api/v1/admin/interns/intern/active",
        json={"isActive": False},
        headers=auth_headers("admin"),
    )
    assert response.status_code == 200
    assert response.json()["is_active"] is False

    headers = auth_headers("intern")
    assert client.get("/api/v1/tasks/open", headers=headers).status_code == 403
    assert client.get("/api/v1/referral/code", headers=headers).status_code == 403

    profile = client.get("/api/v1/profile", headers=headers)
    assert profile.status_code == 200
    assert profile.json()["is_active"] is False

    services.profiles.set_active("intern", True)
    assert client.get("/api/v1/tasks/open", headers=headers).status_code == 200


def test_admin_routes_require_admin(client, auth_headers, make_profile):
    make_profile("intern")

    assert client.get("/api/v1/admin/interns", headers=auth_headers("intern")).status_code == 403


def test_admin_lists_interns_only(client, auth_headers, make_profile):
    make_profile("admin", is_admin=True)
    make_profile("intern_1")
    make_profile("intern_2")

    interns = client.get("/api/v1/admin/interns", headers=auth_headers("admin")).json()

    assert sorted(p["user_id"] for p in interns) == ["intern_1", "intern_2"]


def test_admin_cannot_suspend_self(client, auth_headers, make_profile):
    make_profile("admin", is_admin=True)

    response = client.patch(
        "/api/v1/admin/interns/admin/active",
        json={"isActive": False},
        headers=auth_headers("admin"),
    )

    assert response.status_code == 400


def test_unknown_intern_is_404(client, auth_headers, make_profile):
    make_profile("admin", is_admin=True)

    response = client.patch(
        "/api/v1/admin/interns/nobody/active",
        json={"isActive": False},
        headers=auth_headers("admin"),
    )

    assert response.status_code == 404


def test_point_history(client, auth_headers, make_profile, services):
    make_profile("intern")
    services.points.add_points("intern", 15, reason="adjustment", reference="manual")

    body = client.get("/api/v1/profile/points", headers=auth_headers("intern")).json()

    assert body["points"] == 15
    assert body["transactions"][0]["balance_after"] == 15


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
