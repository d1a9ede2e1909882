import pytest

from gram_panchayat.db import crud
from gram_panchayat.exceptions import (
    AuthorizationError,
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    ValidationError,
)
from gram_panchayat.services.catalog import DEFAULT_SERVICES
from gram_panchayat.services.roles import Role


# ---------- identity ----------

def test_register_assigns_citizen_and_authenticates(svc):
    principal_id = svc.accounts.register("Asha@Example.org", "secret123", {"name": "Asha", "phone": "9876543210"})
    assert svc.roles.resolve_role(principal_id) is Role.CITIZEN
    assert svc.identity.authenticate("asha@example.org", "secret123") == principal_id
    assert svc.identity.get_principal(principal_id).email == "asha@example.org"


def test_register_rejects_duplicate_email(svc):
    svc.accounts.register("ravi@example.org", "secret123", {"name": "Ravi"})
    with pytest.raises(EmailAlreadyRegisteredError):
        svc.accounts.register("RAVI@example.org", "other-secret", {"name": "Ravi K"})


def test_wrong_password_is_rejected(svc):
    svc.accounts.register("meena@example.org", "secret123", {"name": "Meena"})
    with pytest.raises(InvalidCredentialsError):
        svc.identity.authenticate("meena@example.org", "nope")


def test_token_round_trip_and_tampering(svc, citizen):
    token = svc.identity.issue_token(citizen)
    assert svc.identity.verify_token(token) == citizen
    with pytest.raises(InvalidTokenError):
        svc.identity.verify_token(token + "x")


def test_provision_staff_requires_administrator(svc, admin, staff_member):
    new_id = svc.accounts.provision(admin, "clerk@example.org", "secret123", {"name": "Clerk"}, Role.STAFF)
    assert svc.roles.resolve_role(new_id) is Role.STAFF
    with pytest.raises(AuthorizationError):
        svc.accounts.provision(staff_member, "x@example.org", "secret123", {"name": "X"}, Role.ADMINISTRATOR)


def test_ensure_administrator_is_idempotent(svc):
    first = svc.accounts.ensure_administrator("root@example.org", "secret123")
    assert svc.accounts.ensure_administrator("root@example.org", "secret123") == first
    assert svc.roles.resolve_role(first) is Role.ADMINISTRATOR


def test_list_users_by_role(svc, admin, staff_member, citizen):
    everyone = svc.accounts.list_users(admin)
    assert {p.id: r for p, r in everyone} == {
        admin: Role.ADMINISTRATOR, staff_member: Role.STAFF, citizen: Role.CITIZEN,
    }
    assert [p.id for p, _ in svc.accounts.list_users(admin, Role.STAFF)] == [staff_member]


# ---------- cascade deletion ----------

def test_admin_delete_removes_applications_role_and_identity(svc, admin, citizen, other_citizen,
                                                            birth_certificate, trade_license):
    svc.lifecycle.create(citizen, birth_certificate.id, "one")
    svc.lifecycle.create(citizen, trade_license.id, "two")
    kept = svc.lifecycle.create(other_citizen, birth_certificate.id, "three")
    token = svc.identity.issue_token(citizen)

    assert svc.accounts.delete_user(admin, citizen) == 2

    assert crud.list_applications(svc.db, citizen_id=citizen) == []
    assert crud.get_role(svc.db, citizen) is None
    assert not svc.identity.principal_exists(citizen)
    assert [a.id for a in svc.lifecycle.list_applications()] == [kept.id]
    with pytest.raises(InvalidTokenError):
        svc.identity.verify_token(token)

    # numbers are not reused after deletion
    assert svc.lifecycle.create(other_citizen, trade_license.id, "four").application_number == "APP/20240501/0004"


def test_delete_user_guards(svc, admin, staff_member, citizen):
    with pytest.raises(AuthorizationError):
        svc.accounts.delete_user(staff_member, citizen)
    with pytest.raises(ValidationError):
        svc.accounts.delete_user(admin, admin)
    with pytest.raises(NotFoundError):
        svc.accounts.delete_user(admin, "missing")


def test_citizen_deletes_own_account(svc, citizen, birth_certificate):
    svc.lifecycle.create(citizen, birth_certificate.id, "one")
    assert svc.accounts.delete_own_account(citizen) == 1
    assert not svc.identity.principal_exists(citizen)


def test_staff_cannot_self_delete(svc, staff_member):
    with pytest.raises(AuthorizationError):
        svc.accounts.delete_own_account(staff_member)


# ---------- catalog ----------

def test_seed_defaults_only_when_empty(svc):
    assert svc.catalog.seed_defaults() == len(DEFAULT_SERVICES)
    assert svc.catalog.seed_defaults() == 0
    assert svc.catalog.get_service("property-tax").fee == 0


def test_catalog_management_is_admin_only(svc, admin, staff_member):
    with pytest.raises(AuthorizationError):
        svc.catalog.create_service(staff_member, {"name": "Ration Card", "category": "certificate"})

    rec = svc.catalog.create_service(admin, {"name": "Ration Card", "category": "certificate", "fee": 20})
    assert rec.id == "ration-card"
    assert rec.is_active

    svc.catalog.update_service(admin, rec.id, {"is_active": False})
    assert [s.id for s in svc.catalog.list_services(active=True)] == []

    svc.catalog.delete_service(admin, rec.id)
    with pytest.raises(NotFoundError):
        svc.catalog.get_service(rec.id)


def test_catalog_rejects_negative_fee(svc, admin):
    with pytest.raises(ValidationError):
        svc.catalog.create_service(admin, {"name": "Bad", "category": "x", "fee": -1})


def test_search_services(svc):
    svc.catalog.seed_defaults()
    assert {s.id for s in svc.catalog.search_services("LICENSE")} == {"trade-license"}
    assert {s.id for s in svc.catalog.search_services("utility")} == {"water-connection"}


# ---------- reports ----------

def test_reports(svc, admin, staff_member, citizen, other_citizen, birth_certificate, trade_license):
    a1 = svc.lifecycle.create(citizen, birth_certificate.id, "one")
    a2 = svc.lifecycle.create(citizen, trade_license.id, "two")
    svc.lifecycle.create(other_citizen, birth_certificate.id, "three")
    svc.lifecycle.transition(a1.id, staff_member, "processing")
    svc.lifecycle.transition(a1.id, staff_member, "approved")
    svc.lifecycle.cancel(a2.id, citizen)

    dashboard = svc.reports.dashboard_stats(admin)
    assert dashboard["total_users"] == 4
    assert dashboard["users_by_role"] == {"citizen": 2, "staff": 1, "administrator": 1}
    assert dashboard["total_applications"] == 3
    assert dashboard["application_statuses"]["approved"] == 1
    assert dashboard["application_statuses"]["cancelled"] == 1
    assert dashboard["active_services"] == 2
    assert dashboard["today_activity"] == 3

    assert svc.reports.staff_stats(staff_member) == {
        "pending_applications": 1, "processing_applications": 0, "processed_today": 1,
    }
    mine = svc.reports.citizen_stats(citizen)
    assert mine["total_applications"] == 2
    assert mine["approved"] == 1 and mine["cancelled"] == 1 and mine["pending"] == 0

    with pytest.raises(AuthorizationError):
        svc.reports.dashboard_stats(staff_member)
    with pytest.raises(AuthorizationError):
        svc.reports.staff_stats(citizen)
