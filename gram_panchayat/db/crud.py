import datetime as dt
from typing import Iterable
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from gram_panchayat.db.models import Application, DailyCounter, Principal, RoleAssignment, Service
from gram_panchayat.exceptions import ConflictError

# ---------- principals ----------

def create_principal(db: Session, **kwargs) -> Principal:
    rec = Principal(**kwargs)
    db.add(rec); db.commit(); db.refresh(rec)
    return rec

def get_principal(db: Session, principal_id: str) -> Principal | None:
    return db.get(Principal, principal_id)

def get_principal_by_email(db: Session, email: str) -> Principal | None:
    return db.scalar(select(Principal).where(Principal.email == email.lower()))

def update_principal(db: Session, rec: Principal, **fields) -> Principal:
    for key, value in fields.items():
        setattr(rec, key, value)
    db.add(rec); db.commit(); db.refresh(rec)
    return rec

def list_principals(db: Session, role: str | None = None) -> list[tuple[Principal, str | None]]:
    stmt = (
        select(Principal, RoleAssignment.role)
        .outerjoin(RoleAssignment, RoleAssignment.principal_id == Principal.id)
        .order_by(Principal.created_at.desc())
    )
    if role == "citizen":
        # unassigned principals resolve to citizen
        stmt = stmt.where(or_(RoleAssignment.role == role, RoleAssignment.role.is_(None)))
    elif role:
        stmt = stmt.where(RoleAssignment.role == role)
    return [(p, r) for p, r in db.execute(stmt).all()]

# ---------- roles ----------

def get_role(db: Session, principal_id: str) -> str | None:
    return db.scalar(select(RoleAssignment.role).where(RoleAssignment.principal_id == principal_id))

def set_role(db: Session, principal_id: str, role: str) -> None:
    rec = db.get(RoleAssignment, principal_id)
    if rec is None:
        db.add(RoleAssignment(principal_id=principal_id, role=role))
    else:
        rec.role = role
    db.commit()

def count_roles(db: Session) -> dict[str, int]:
    rows = db.execute(select(RoleAssignment.role, func.count()).group_by(RoleAssignment.role)).all()
    return {role: n for role, n in rows}

# ---------- services ----------

def create_service(db: Session, **kwargs) -> Service:
    rec = Service(**kwargs)
    db.add(rec); db.commit(); db.refresh(rec)
    return rec

def get_service(db: Session, service_id: str) -> Service | None:
    return db.get(Service, service_id)

def list_services(db: Session, category: str | None = None, is_active: bool | None = None) -> list[Service]:
    stmt = select(Service)
    if category:
        stmt = stmt.where(Service.category == category)
    if is_active is not None:
        stmt = stmt.where(Service.is_active == is_active)
    return list(db.scalars(stmt.order_by(Service.created_at.desc(), Service.name)))

def update_service(db: Session, rec: Service, **fields) -> Service:
    for key, value in fields.items():
        setattr(rec, key, value)
    db.add(rec); db.commit(); db.refresh(rec)
    return rec

def delete_service(db: Session, rec: Service) -> None:
    db.delete(rec); db.commit()

def count_services(db: Session) -> int:
    return db.scalar(select(func.count()).select_from(Service))

# ---------- application numbering ----------

def next_daily_sequence(db: Session, day: str) -> int:
    """Atomically bump the counter for ``day`` inside the caller's transaction.

    The increment is a single UPDATE so concurrent creators serialize on the
    row; the first creator of the day inserts it. Nothing is committed here.
    """
    bump = (
        update(DailyCounter)
        .where(DailyCounter.day == day)
        .values(last_value=DailyCounter.last_value + 1)
        .execution_options(synchronize_session=False)
    )
    for _ in range(3):
        if db.execute(bump).rowcount:
            return db.scalar(select(DailyCounter.last_value).where(DailyCounter.day == day))
        db.add(DailyCounter(day=day, last_value=1))
        try:
            db.flush()
            return 1
        except IntegrityError:
            # another creator inserted the row first
            db.rollback()
    raise ConflictError("Could not allocate an application number", details={"day": day})

# ---------- applications ----------

def get_application(db: Session, application_id: str) -> Application | None:
    return db.get(Application, application_id)

def add_application(db: Session, **kwargs) -> Application:
    """Flushes but does not commit, so numbering and insert share a transaction."""
    rec = Application(**kwargs)
    db.add(rec); db.flush()
    return rec

def find_open_application(db: Session, citizen_id: str, service_id: str,
                          statuses: Iterable[str]) -> Application | None:
    stmt = select(Application).where(
        Application.citizen_id == citizen_id,
        Application.service_id == service_id,
        Application.status.in_(list(statuses)),
    )
    return db.scalars(stmt).first()

def list_applications(
    db: Session,
    citizen_id: str | None = None,
    service_id: str | None = None,
    statuses: Iterable[str] | None = None,
    created_since: dt.datetime | None = None,
) -> list[Application]:
    stmt = select(Application)
    if citizen_id:
        stmt = stmt.where(Application.citizen_id == citizen_id)
    if service_id:
        stmt = stmt.where(Application.service_id == service_id)
    if statuses:
        stmt = stmt.where(Application.status.in_(list(statuses)))
    if created_since is not None:
        stmt = stmt.where(Application.created_at >= created_since)
    stmt = stmt.order_by(Application.created_at.desc(), Application.application_number.desc())
    return list(db.scalars(stmt))

def update_application_if_status(db: Session, application_id: str, expected_status: str, **values) -> bool:
    """Conditional write: applies ``values`` only if the stored status is still
    ``expected_status``. Returns False when another writer got there first."""
    stmt = (
        update(Application)
        .where(Application.id == application_id, Application.status == expected_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    won = db.execute(stmt).rowcount == 1
    db.commit()
    return won

def count_applications_by_status(db: Session, citizen_id: str | None = None) -> dict[str, int]:
    stmt = select(Application.status, func.count()).group_by(Application.status)
    if citizen_id:
        stmt = stmt.where(Application.citizen_id == citizen_id)
    return {status: n for status, n in db.execute(stmt).all()}

def count_applications(db: Session, created_since: dt.datetime | None = None,
                       updated_since: dt.datetime | None = None,
                       statuses: Iterable[str] | None = None) -> int:
    stmt = select(func.count()).select_from(Application)
    if created_since is not None:
        stmt = stmt.where(Application.created_at >= created_since)
    if updated_since is not None:
        stmt = stmt.where(Application.updated_at >= updated_since)
    if statuses:
        stmt = stmt.where(Application.status.in_(list(statuses)))
    return db.scalar(stmt)

# ---------- account deletion ----------

def delete_applications_for_citizen(db: Session, citizen_id: str) -> int:
    """Not committed; the caller commits together with the role removal."""
    return db.execute(
        delete(Application).where(Application.citizen_id == citizen_id)
        .execution_options(synchronize_session=False)
    ).rowcount

def delete_role(db: Session, principal_id: str) -> None:
    db.execute(
        delete(RoleAssignment).where(RoleAssignment.principal_id == principal_id)
        .execution_options(synchronize_session=False)
    )

def delete_principal(db: Session, rec: Principal) -> None:
    db.delete(rec); db.commit()
