"""Task marketplace: applications, status changes, approval and comments."""

import pytest

from superintern.referral.models import Referral
from superintern.tasks.models import TaskStatus


@pytest.fixture
def people(make_profile):
    make_profile("admin", is_admin=True)
    make_profile("intern")
    make_profile("other")


@pytest.fixture
def admin_headers(auth_headers, people):
    return auth_headers("admin")


@pytest.fixture
def intern_headers(auth_headers, people):
    return auth_headers("intern")


def _create_task(client, admin_headers, **body):
    payload = {"title": "Write docs", "points": 20}
    payload.update(body)
    response = client.post("/api/v1/admin/tasks", json=payload, headers=admin_headers)
    assert response.status_code == 201
    return response.json()


def _set_status(client, headers, task_id, status):
    return client.patch(f"/api/v1/tasks/{task_id}/status", json={"status": status}, headers=headers)


# ==================== CREATION & VIEWS ====================


def test_create_task_defaults(client, admin_headers):
    task = _create_task(client, admin_headers, isPaid=False, paymentAmount=30)

    assert task["status"] == TaskStatus.OPEN.value
    assert task["payment_amount"] == 0.0
    assert task["created_by"] == "admin"


def test_create_task_with_assignee_starts_assigned(client, admin_headers):
    task = _create_task(client, admin_headers, assignedTo="intern")

    assert task["status"] == TaskStatus.ASSIGNED.value
    assert task["assigned_to"] == "intern"


def test_create_task_requires_admin(client, intern_headers):
    response = client.post("/api/v1/admin/tasks", json={"title": "Sneaky"}, headers=intern_headers)

    assert response.status_code == 403


def test_open_tasks_include_application_status(client, admin_headers, intern_headers):
    task = _create_task(client, admin_headers)
    client.post(f"/api/v1/tasks/{task['id']}/applications", json={"reason": "I like docs"}, headers=intern_headers)

    listed = client.get("/api/v1/tasks/open", headers=intern_headers).json()

    assert [t["id"] for t in listed] == [task["id"]]
    assert listed[0]["application_status"] == "pending"


def test_intern_cannot_view_foreign_task(client, admin_headers, auth_headers):
    task = _create_task(client, admin_headers, assignedTo="intern")

    response = client.get(f"/api/v1/tasks/{task['id']}", headers=auth_headers("other"))

    assert response.status_code == 403


def test_unknown_task_is_404(client, intern_headers):
    assert client.get("/api/v1/tasks/999", headers=intern_headers).status_code == 404


def test_my_tasks_ordered_by_status(client, admin_headers, intern_headers):
    first = _create_task(client, admin_headers, title="First", assignedTo="intern")
    second = _create_task(client, admin_headers, title="Second", assignedTo="intern")
    _set_status(client, intern_headers, first["id"], "in_progress")

    mine = client.get("/api/v1/tasks/mine", headers=intern_headers).json()

    assert [t["id"] for t in mine] == [second["id"], first["id"]]


# ==================== APPLICATIONS ====================


def test_duplicate_pending_application_conflicts(client, admin_headers, intern_headers):
    task = _create_task(client, admin_headers)
    url = f"/api/v1/tasks/{task['id']}/applications"

    assert client.post(url, json={}, headers=intern_headers).status_code == 201
    assert client.post(url, json={}, headers=intern_headers).status_code == 409


def test_paid_task_needs_points(client, admin_headers, intern_headers, services):
    task = _create_task(client, admin_headers, isPaid=True, paymentAmount=100)
    url = f"/api/v1/tasks/{task['id']}/applications"

    response = client.post(url, json={}, headers=intern_headers)
    assert response.status_code == 403
    assert "100 points" in response.json()["detail"]

    services.points.add_points("intern", 100)
    assert client.post(url, json={}, headers=intern_headers).status_code == 201


def test_approving_application_assigns_task(client, admin_headers, intern_headers):
    task = _create_task(client, admin_headers)
    application = client.post(
        f"/api/v1/tasks/{task['id']}/applications", json={}, headers=intern_headers
    ).json()

    response = client.post(
        f"/api/v1/admin/applications/{application['id']}/review",
        json={"approve": True},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    detail = client.get(f"/api/v1/tasks/{task['id']}", headers=intern_headers).json()
    assert detail["assigned_to"] == "intern"
    assert detail["status"] == TaskStatus.ASSIGNED.value


def test_rejection_requires_reason(client, admin_headers, intern_headers):
    task = _create_task(client, admin_headers)
    application = client.post(
        f"/api/v1/tasks/{task['id']}/applications", json={}, headers=intern_headers
    ).json()
    url = f"/api/v1/admin/applications/{application['id']}/review"

    assert client.post(url, json={"approve": False}, headers=admin_headers).status_code == 400

    response = client.post(url, json={"approve": False, "notes": "Not enough experience"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["notes"] == "Not enough experience"

    # Reviewed applications cannot be reviewed again
    assert client.post(url, json={"approve": True}, headers=admin_headers).status_code == 409


def test_list_applications_filter(client, admin_headers, intern_headers):
    task = _create_task(client, admin_headers)
    client.post(f"/api/v1/tasks/{task['id']}/applications", json={}, headers=intern_headers)

    pending = client.get("/api/v1/admin/applications?status=pending", headers=admin_headers).json()
    rejected = client.get("/api/v1/admin/applications?status=rejected", headers=admin_headers).json()

    assert len(pending) == 1
    assert pending[0]["applicant"]["user_id"] == "intern"
    assert pending[0]["task"]["title"] == "Write docs"
    assert rejected == []


# ==================== STATUS CHANGES ====================


def test_intern_can_only_use_own_statuses(client, admin_headers, intern_headers, auth_headers):
    task = _create_task(client, admin_headers, assignedTo="intern")

    assert _set_status(client, intern_headers, task["id"], "cancelled").status_code == 403
    assert _set_status(client, auth_headers("other"), task["id"], "in_progress").status_code == 403
    assert _set_status(client, intern_headers, task["id"], "bogus").status_code == 400
    assert _set_status(client, intern_headers, task["id"], "in_progress").status_code == 200


def test_completion_adds_comment(client, admin_headers, intern_headers):
    task = _create_task(client, admin_headers, assignedTo="intern")

    response = _set_status(client, intern_headers, task["id"], "completed")

    assert response.status_code == 200
    assert response.json()["completed_at"] is not None
    detail = client.get(f"/api/v1/tasks/{task['id']}", headers=intern_headers).json()
    assert [c["content"] for c in detail["comments"]] == ["Task marked as completed"]


def test_approved_status_goes_through_approval(client, admin_headers):
    task = _create_task(client, admin_headers, assignedTo="intern")

    assert _set_status(client, admin_headers, task["id"], "approved").status_code == 400


def test_three_completed_tasks_reward_referrer(client, admin_headers, intern_headers, services, make_profile, give_code, db):
    make_profile("referrer")
    give_code("referrer", "XYZ123AB")
    services.referrals.record_signup("intern", "intern@example.com", referral_code="XYZ123AB")

    for index in range(3):
        task = _create_task(client, admin_headers, title=f"Task {index}", assignedTo="intern")
        assert _set_status(client, intern_headers, task["id"], "completed").status_code == 200

    with db.session() as session:
        referral = session.query(Referral).filter(Referral.referred_user_id == "intern").one()

    assert referral.completed_task_count == 3
    assert referral.points_awarded is True
    assert services.points.get_balance("referrer") == 50


def test_recompleting_a_task_counts_once(client, admin_headers, intern_headers, services, make_profile, give_code, db):
    make_profile("referrer")
    give_code("referrer", "XYZ123AB")
    services.referrals.record_signup("intern", "intern@example.com", referral_code="XYZ123AB")
    task = _create_task(client, admin_headers, assignedTo="intern")

    _set_status(client, intern_headers, task["id"], "completed")
    _set_status(client, intern_headers, task["id"], "in_progress")
    _set_status(client, intern_headers, task["id"], "completed")

    with db.session() as session:
        referral = session.query(Referral).filter(Referral.referred_user_id == "intern").one()
    assert referral.completed_task_count == 1


# ==================== APPROVAL ====================


def test_approval_awards_points_once(client, admin_headers, intern_headers, services):
    task = _create_task(client, admin_headers, points=40, assignedTo="intern")
    url = f"/api/v1/admin/tasks/{task['id']}/approve"

    assert client.post(url, headers=admin_headers).status_code == 409

    _set_status(client, intern_headers, task["id"], "completed")
    response = client.post(url, headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["status"] == TaskStatus.APPROVED.value
    assert services.points.get_balance("intern") == 40

    assert client.post(url, headers=admin_headers).status_code == 409
    assert services.points.get_balance("intern") == 40
    assert _set_status(client, admin_headers, task["id"], "open").status_code == 409


# ==================== COMMENTS ====================


def test_replies_are_grouped_one_level(client, admin_headers, intern_headers):
    task = _create_task(client, admin_headers, assignedTo="intern")
    url = f"/api/v1/tasks/{task['id']}/comments"

    top = client.post(url, json={"content": "Question"}, headers=intern_headers).json()
    reply = client.post(url, json={"content": "Answer", "parent_id": top["id"]}, headers=admin_headers).json()
    nested = client.post(url, json={"content": "Thanks", "parent_id": reply["id"]}, headers=intern_headers).json()

    assert nested["parent_id"] == top["id"]

    detail = client.get(f"/api/v1/tasks/{task['id']}", headers=intern_headers).json()
    assert len(detail["comments"]) == 1
    assert [r["content"] for r in detail["comments"][0]["replies"]] == ["Answer", "Thanks"]


def test_empty_comment_rejected(client, admin_headers, intern_headers):
    task = _create_task(client, admin_headers, assignedTo="intern")

    response = client.post(f"/api/v1/tasks/{task['id']}/comments", json={"content": ""}, headers=intern_headers)

    assert response.status_code == 422
