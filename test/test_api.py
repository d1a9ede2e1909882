import pytest

from gram_panchayat.config import settings

API = settings.API_V1_STR


@pytest.fixture
def pending_app(svc, citizen, birth_certificate):
    return svc.lifecycle.create(citizen, birth_certificate.id, "For school admission")


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "OK"


def test_register_login_me(client):
    r = client.post(f"{API}/auth/register", json={
        "name": "Asha Devi", "email": "asha@example.org", "phone": "9876543210",
        "address": "Ward 4, Main Road", "password": "secret123",
    })
    assert r.status_code == 201, r.text
    assert r.json()["role"] == "citizen"

    r = client.post(f"{API}/auth/login", json={"email": "asha@example.org", "password": "secret123"})
    assert r.status_code == 200
    token = r.json()["access_token"]

    r = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["email"] == "asha@example.org"


def test_register_duplicate_email_conflicts(client):
    body = {"name": "Ravi", "email": "ravi@example.org", "password": "secret123"}
    assert client.post(f"{API}/auth/register", json=body).status_code == 201
    assert client.post(f"{API}/auth/register", json=body).status_code == 409


def test_bad_login_is_401(client):
    r = client.post(f"{API}/auth/login", json={"email": "nobody@example.org", "password": "x"})
    assert r.status_code == 401


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer not-a-token"}])
def test_missing_or_invalid_token_is_401(client, headers):
    r = client.get(f"{API}/applications", headers=headers)
    assert r.status_code == 401
    assert r.json()["code"] == "INVALID_TOKEN"


def test_submit_and_list(client, headers_for, citizen, birth_certificate):
    r = client.post(f"{API}/applications", headers=headers_for(citizen),
                    json={"service_id": birth_certificate.id, "reason": "For school admission"})
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["status"] == "pending"
    assert body["application_number"].startswith("APP/")
    assert body["service_name"] == "Birth Certificate"

    r = client.get(f"{API}/applications", headers=headers_for(citizen))
    assert [a["id"] for a in r.json()] == [body["id"]]


def test_duplicate_and_blank_reason_are_400(client, headers_for, citizen, birth_certificate, pending_app):
    r = client.post(f"{API}/applications", headers=headers_for(citizen),
                    json={"service_id": birth_certificate.id, "reason": "Again"})
    assert r.status_code == 400
    assert r.json()["code"] == "DUPLICATE_APPLICATION"
    assert r.json()["details"] == {"citizen_id": citizen, "service_id": birth_certificate.id}

    r = client.post(f"{API}/applications", headers=headers_for(citizen),
                    json={"service_id": birth_certificate.id, "reason": "   "})
    assert r.status_code == 400


def test_unknown_service_is_404(client, headers_for, citizen):
    r = client.post(f"{API}/applications", headers=headers_for(citizen),
                    json={"service_id": "nope", "reason": "x"})
    assert r.status_code == 404


def test_status_transitions_over_http(client, headers_for, staff_member, citizen, pending_app):
    url = f"{API}/applications/{pending_app.id}/status"

    r = client.patch(url, headers=headers_for(citizen), json={"status": "processing"})
    assert r.status_code == 403

    r = client.patch(url, headers=headers_for(staff_member), json={"status": "processing", "remarks": "Checking"})
    assert r.status_code == 200
    assert r.json()["remarks"] == "Checking"

    r = client.patch(url, headers=headers_for(staff_member), json={"status": "approved"})
    assert r.status_code == 200
    assert r.json()["status"] == "approved"

    r = client.patch(url, headers=headers_for(staff_member), json={"status": "rejected"})
    assert r.status_code == 409
    assert r.json()["code"] == "INVALID_TRANSITION"


def test_status_of_missing_application_is_404(client, headers_for, staff_member):
    r = client.patch(f"{API}/applications/missing/status", headers=headers_for(staff_member),
                     json={"status": "processing"})
    assert r.status_code == 404


def test_unknown_status_value_is_400(client, headers_for, staff_member, pending_app):
    r = client.patch(f"{API}/applications/{pending_app.id}/status", headers=headers_for(staff_member),
                     json={"status": "archived"})
    assert r.status_code == 400


def test_cancel_over_http(client, headers_for, citizen, other_citizen, pending_app):
    url = f"{API}/applications/{pending_app.id}/cancel"
    assert client.post(url, headers=headers_for(other_citizen)).status_code == 403

    r = client.post(url, headers=headers_for(citizen))
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"
    assert r.json()["remarks"] == "Cancelled by user"

    assert client.post(url, headers=headers_for(citizen)).status_code == 409


def test_batch_status_over_http(client, svc, headers_for, staff_member, other_citizen, trade_license, pending_app):
    done = svc.lifecycle.create(other_citizen, trade_license.id, "Shop")
    svc.lifecycle.transition(done.id, staff_member, "processing")
    svc.lifecycle.transition(done.id, staff_member, "rejected")

    r = client.post(f"{API}/applications/batch-status", headers=headers_for(staff_member),
                    json={"application_ids": [pending_app.id, done.id], "status": "processing"})
    assert r.status_code == 200
    body = r.json()
    assert body["succeeded"] == [pending_app.id]
    assert body["failed"] == [{"id": done.id, "code": "INVALID_TRANSITION",
                               "message": "Cannot move application from 'rejected' to 'processing'"}]


@pytest.mark.parametrize("decision", ["approved", "rejected"])
def test_batch_decision_over_http(client, svc, headers_for, staff_member, citizen, other_citizen,
                                  birth_certificate, trade_license, pending_app, decision):
    reviewing = svc.lifecycle.create(citizen, trade_license.id, "Shop")
    svc.lifecycle.transition(reviewing.id, staff_member, "processing")
    withdrawn = svc.lifecycle.create(other_citizen, birth_certificate.id, "Not needed")
    svc.lifecycle.cancel(withdrawn.id, other_citizen)
    ids = [pending_app.id, reviewing.id, withdrawn.id]

    r = client.post(f"{API}/applications/batch-status", headers=headers_for(staff_member),
                    json={"application_ids": ids, "status": decision, "remarks": "Monthly review"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["succeeded"] == ids[:2]
    assert body["failed"] == [{"id": ids[2], "code": "INVALID_TRANSITION",
                               "message": f"Cannot move application from 'cancelled' to '{decision}'"}]

    for app_id in ids[:2]:
        r = client.get(f"{API}/applications/{app_id}", headers=headers_for(staff_member))
        assert (r.json()["status"], r.json()["remarks"]) == (decision, "Monthly review")
    r = client.get(f"{API}/applications/{ids[2]}", headers=headers_for(other_citizen))
    assert r.json()["status"] == "cancelled"


def test_batch_decision_requires_staff_over_http(client, headers_for, citizen, pending_app):
    r = client.post(f"{API}/applications/batch-status", headers=headers_for(citizen),
                    json={"application_ids": [pending_app.id], "status": "approved"})
    assert r.status_code == 403


def test_list_filters_by_repeated_status(client, svc, headers_for, staff_member, other_citizen, trade_license,
                                         pending_app):
    other = svc.lifecycle.create(other_citizen, trade_license.id, "Shop")
    svc.lifecycle.transition(other.id, staff_member, "processing")

    r = client.get(f"{API}/applications", headers=headers_for(staff_member),
                   params=[("status", "pending"), ("status", "processing")])
    assert {a["id"] for a in r.json()} == {pending_app.id, other.id}

    r = client.get(f"{API}/applications", headers=headers_for(staff_member), params={"status": "processing"})
    assert [a["id"] for a in r.json()] == [other.id]


def test_public_catalog_and_admin_management(client, headers_for, admin, staff_member, birth_certificate):
    r = client.get(f"{API}/services")
    assert [s["id"] for s in r.json()] == [birth_certificate.id]

    new = {"name": "Ration Card", "category": "certificate", "fee": 20}
    assert client.post(f"{API}/services", headers=headers_for(staff_member), json=new).status_code == 403
    r = client.post(f"{API}/services", headers=headers_for(admin), json=new)
    assert r.status_code == 201
    assert r.json()["id"] == "ration-card"

    r = client.patch(f"{API}/services/ration-card", headers=headers_for(admin), json={"fee": 25})
    assert r.json()["fee"] == 25
    assert client.delete(f"{API}/services/ration-card", headers=headers_for(admin)).status_code == 204
    assert client.get(f"{API}/services/ration-card").status_code == 404


def test_admin_user_management(client, headers_for, admin, citizen, pending_app):
    r = client.get(f"{API}/admin/users", headers=headers_for(admin))
    assert {u["id"] for u in r.json()} == {admin, citizen}

    r = client.patch(f"{API}/admin/users/{citizen}/role", headers=headers_for(admin), json={"role": "staff"})
    assert r.json()["role"] == "staff"

    r = client.delete(f"{API}/admin/users/{citizen}", headers=headers_for(admin))
    assert r.status_code == 200
    assert r.json() == {"id": citizen, "applications_removed": 1}

    assert client.get(f"{API}/admin/users", headers=headers_for(citizen)).status_code == 401


def test_stats_endpoints(client, headers_for, admin, staff_member, citizen, pending_app):
    assert client.get(f"{API}/admin/stats", headers=headers_for(admin)).json()["total_applications"] == 1
    assert client.get(f"{API}/staff/stats", headers=headers_for(staff_member)).json()["pending_applications"] == 1
    assert client.get(f"{API}/staff/stats", headers=headers_for(citizen)).status_code == 403
    assert client.get(f"{API}/users/me/stats", headers=headers_for(citizen)).json()["pending"] == 1


def test_profile_update_and_self_delete(client, headers_for, citizen, pending_app):
    r = client.patch(f"{API}/users/me", headers=headers_for(citizen), json={"phone": "9000000000"})
    assert r.json()["phone"] == "9000000000"

    r = client.delete(f"{API}/users/me", headers=headers_for(citizen))
    assert r.json()["applications_removed"] == 1
