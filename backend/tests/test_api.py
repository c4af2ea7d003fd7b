import uuid

import pytest

from control_tower.core.events import APPROVAL_COMPLETED

BASE = "/api/v1"
ALICE = {"X-User-Id": "u-alice", "X-User-Name": "Alice", "X-Request-Id": "req-42"}
BOB = {"X-User-Id": "u-bob", "X-User-Name": "Bob"}


@pytest.fixture
def ids(api):
    product = api.post(f"{BASE}/products", json={"name": "P1"}, headers=ALICE)
    client = api.post(f"{BASE}/clients", json={"name": "C1"}, headers=ALICE)
    assert product.status_code == 201
    assert client.status_code == 201
    return {"product": product.json()["id"], "client": client.json()["id"]}


@pytest.fixture
def deployment_id(api, ids):
    response = api.post(
        f"{BASE}/deployments",
        json={"product_id": ids["product"], "client_ids": [ids["client"]], "environment": "qa"},
        headers=ALICE,
    )
    assert response.status_code == 201
    return response.json()["id"]


def test_health(api):
    response = api.get(f"{BASE}/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_release_flow_over_http(api, deployment_id, events):
    body = api.get(f"{BASE}/deployments/{deployment_id}").json()
    assert body["status"] == "Not Started"
    assert body["product_name"] == "P1"

    items = api.get(f"{BASE}/checklists/deployment/{deployment_id}").json()
    assert len(items) == 9

    blocked = api.put(
        f"{BASE}/deployments/{deployment_id}/status",
        json={"status": "Blocked", "note": "waiting on vendor"},
        headers=ALICE,
    )
    assert blocked.status_code == 200
    assert blocked.json()["status_history"][-1]["author"] == "Alice"

    requested = api.post(f"{BASE}/approvals/request", json={"deployment_id": deployment_id}, headers=ALICE)
    assert requested.status_code == 201
    approval_id = requested.json()["id"]
    assert [a["id"] for a in api.get(f"{BASE}/approvals/pending").json()] == [approval_id]

    approved = api.post(f"{BASE}/approvals/{approval_id}/approve", json={"comments": "ok"}, headers=BOB)
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert approved.json()["reviewed_by_name"] == "Bob"

    released = api.get(f"{BASE}/deployments/{deployment_id}").json()
    assert released["status"] == "Released"
    assert len(released["status_history"]) == 2

    again = api.post(f"{BASE}/approvals/{approval_id}/reject", json={"rejection_reason": "late"}, headers=BOB)
    assert again.status_code == 409
    assert again.json() == {"detail": "Approval already processed"}

    assert APPROVAL_COMPLETED in [name for name, _ in events]


def test_approval_request_requires_user_header(api, deployment_id):
    response = api.post(f"{BASE}/approvals/request", json={"deployment_id": deployment_id})
    assert response.status_code == 400


def test_approve_without_body(api, deployment_id):
    approval_id = api.post(
        f"{BASE}/approvals/request", json={"deployment_id": deployment_id}, headers=ALICE
    ).json()["id"]
    response = api.post(f"{BASE}/approvals/{approval_id}/approve", headers=BOB)
    assert response.status_code == 200
    assert response.json()["comments"] is None


def test_partial_approval_failure_is_reported(api, deployment_id):
    approval_id = api.post(
        f"{BASE}/approvals/request", json={"deployment_id": deployment_id}, headers=ALICE
    ).json()["id"]
    assert api.delete(f"{BASE}/deployments/{deployment_id}", headers=ALICE).status_code == 200

    response = api.post(f"{BASE}/approvals/{approval_id}/approve", headers=BOB)

    assert response.status_code == 500
    assert response.json()["approval_id"] == approval_id
    assert response.json()["deployment_id"] == deployment_id
    assert api.get(f"{BASE}/approvals/{approval_id}").json()["status"] == "approved"


def test_error_status_codes(api, deployment_id):
    assert api.get(f"{BASE}/deployments/{uuid.uuid4()}").status_code == 404
    assert api.get(f"{BASE}/deployments/not-a-uuid").status_code == 400
    assert api.get(f"{BASE}/approvals/{uuid.uuid4()}").status_code == 404

    bad_status = api.put(f"{BASE}/deployments/{deployment_id}/status", json={"status": "Shipped"})
    assert bad_status.status_code == 422

    missing_clients = api.post(f"{BASE}/deployments", json={"product_id": str(uuid.uuid4()), "client_ids": []})
    assert missing_clients.status_code == 422

    reject_without_reason = api.post(f"{BASE}/approvals/{uuid.uuid4()}/reject", json={}, headers=BOB)
    assert reject_without_reason.status_code == 422


def test_duplicate_client_and_client_with_deployments(api, ids, deployment_id):
    duplicate = api.post(f"{BASE}/clients", json={"name": "C1"})
    assert duplicate.status_code == 409

    blocked_delete = api.delete(f"{BASE}/clients/{ids['client']}")
    assert blocked_delete.status_code == 409

    detail = api.get(f"{BASE}/clients/{ids['client']}").json()
    assert [d["id"] for d in detail["deployments"]] == [deployment_id]


def test_product_soft_delete_and_restore(api, ids):
    product_id = ids["product"]
    assert api.delete(f"{BASE}/products/{product_id}").status_code == 200
    assert api.get(f"{BASE}/products/{product_id}").status_code == 404
    assert api.get(f"{BASE}/products").json() == []

    restored = api.post(f"{BASE}/products/{product_id}/restore")
    assert restored.status_code == 200
    assert restored.json()["deleted_at"] is None


def test_checklist_endpoints(api, deployment_id):
    items = api.get(f"{BASE}/checklists/deployment/{deployment_id}").json()

    toggled = api.put(f"{BASE}/checklists/{items[0]['id']}/toggle")
    assert toggled.json()["is_completed"] is True

    progress = api.get(f"{BASE}/checklists/deployment/{deployment_id}/progress").json()
    assert progress == {"total": 9, "completed": 1, "percentage": 11}

    api.put(f"{BASE}/checklists/deployment/{deployment_id}/complete")
    assert api.get(f"{BASE}/checklists/deployment/{deployment_id}/progress").json()["completed"] == 9

    reset = api.put(f"{BASE}/checklists/deployment/{deployment_id}/reset").json()
    assert not any(item["is_completed"] for item in reset)


def test_checklist_template_admin(api):
    seeded = api.post(f"{BASE}/checklist-templates/seed").json()
    assert seeded["count"] == 9

    active = api.get(f"{BASE}/checklist-templates/active").json()
    first, second = active[0], active[1]
    reordered = api.post(
        f"{BASE}/checklist-templates/reorder",
        json={"items": [{"id": first["id"], "sort_order": 2}, {"id": second["id"], "sort_order": 1}]},
    ).json()
    assert [t["label"] for t in reordered[:2]] == [second["label"], first["label"]]

    updated = api.put(f"{BASE}/checklist-templates/{first['id']}", json={"is_active": False})
    assert updated.json()["is_active"] is False
    assert len(api.get(f"{BASE}/checklist-templates/active").json()) == 8


def test_blocked_comment_endpoint(api, deployment_id):
    first = api.post(f"{BASE}/deployments/{deployment_id}/comment", json={"text": "Vendor late"}, headers=ALICE)
    parent_id = first.json()["blocked_comments"][0]["id"]

    reply = api.post(
        f"{BASE}/deployments/{deployment_id}/comment",
        json={"text": "Escalated", "parent_id": parent_id},
        headers=BOB,
    )
    thread = reply.json()["blocked_comments"]
    assert [(c["author"], c["parentId"]) for c in thread] == [("Alice", None), ("Bob", parent_id)]


def test_audit_trail_endpoints(api, deployment_id):
    api.put(f"{BASE}/deployments/{deployment_id}/status", json={"status": "In Progress"}, headers=ALICE)

    trail = api.get(f"{BASE}/audit-logs/resource/deployment/{deployment_id}").json()
    assert [entry["action"] for entry in trail] == ["status_change", "create"]
    assert trail[0]["metadata"]["requestId"] == "req-42"
    assert trail[0]["changes"] == [{"field": "status", "oldValue": "Not Started", "newValue": "In Progress"}]

    search = api.get(f"{BASE}/audit-logs", params={"user_id": "u-alice", "resource_type": "deployment"}).json()
    assert search["pagination"]["total"] == 2

    by_user = api.get(f"{BASE}/audit-logs/user/u-alice").json()
    assert {entry["resource_type"] for entry in by_user} == {"product", "client", "deployment"}

    single = api.get(f"{BASE}/audit-logs/{trail[0]['id']}")
    assert single.status_code == 200
    assert api.get(f"{BASE}/audit-logs/{uuid.uuid4()}").status_code == 404
