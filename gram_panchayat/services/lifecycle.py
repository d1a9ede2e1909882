"""
Application lifecycle
=====================

    pending ──► processing ──► approved
       │                  └──► rejected
       └──► cancelled

``approved``, ``rejected`` and ``cancelled`` are terminal. Staff and
administrators advance an application; only the citizen who filed it may
cancel it, and only while it is still pending. A batch approve or reject may
also decide a pending application directly.

Every status change is a conditional write keyed on the status that was read,
so of two racing writers exactly one wins and the other gets ``ConflictError``.
Application numbers come from a per-day counter bumped in the same
transaction as the insert.
"""
import datetime as dt
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gram_panchayat.db import crud
from gram_panchayat.db.models import Application, utcnow
from gram_panchayat.exceptions import (
    AuthorizationError,
    ConflictError,
    DuplicateApplicationError,
    InvalidTransitionError,
    NotFoundError,
    PanchayatError,
    ValidationError,
)
from gram_panchayat.services.catalog import ServiceCatalog
from gram_panchayat.services.roles import STAFF_ROLES, Role, RoleResolver

logger = logging.getLogger(__name__)


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


OPEN_STATUSES = frozenset({ApplicationStatus.PENDING, ApplicationStatus.PROCESSING})
TERMINAL_STATUSES = frozenset({ApplicationStatus.APPROVED, ApplicationStatus.REJECTED, ApplicationStatus.CANCELLED})
DECISIONS = frozenset({ApplicationStatus.APPROVED, ApplicationStatus.REJECTED})
BATCH_TARGETS = DECISIONS | {ApplicationStatus.PROCESSING}


class Actor(Enum):
    OWNER = "owner"   # the citizen who filed the application
    STAFF = "staff"   # staff or administrator


TRANSITIONS: Dict[Tuple[ApplicationStatus, ApplicationStatus], Actor] = {
    (ApplicationStatus.PENDING, ApplicationStatus.PROCESSING): Actor.STAFF,
    (ApplicationStatus.PENDING, ApplicationStatus.CANCELLED): Actor.OWNER,
    (ApplicationStatus.PROCESSING, ApplicationStatus.APPROVED): Actor.STAFF,
    (ApplicationStatus.PROCESSING, ApplicationStatus.REJECTED): Actor.STAFF,
}

CANCELLED_BY_USER = "Cancelled by user"

StatusLike = Union[str, ApplicationStatus]


def format_application_number(day: dt.date, sequence: int) -> str:
    return f"APP/{day:%Y%m%d}/{sequence:04d}"


def generate_application_number(db: Session, creation_date: dt.date) -> str:
    """Next number for ``creation_date``. Runs inside the caller's transaction;
    the number is only taken once that transaction commits."""
    return format_application_number(creation_date, crud.next_daily_sequence(db, f"{creation_date:%Y%m%d}"))


def parse_status(value: StatusLike) -> ApplicationStatus:
    try:
        return ApplicationStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown status '{value}'", field="status")


def _status_set(status: Union[StatusLike, Iterable[StatusLike], None]) -> Optional[List[str]]:
    if status is None:
        return None
    if isinstance(status, (str, ApplicationStatus)):
        status = [status]
    return sorted({parse_status(s).value for s in status}) or None


@dataclass
class BatchFailure:
    id: str
    error: PanchayatError


@dataclass
class BatchResult:
    succeeded: List[str] = field(default_factory=list)
    failed: List[BatchFailure] = field(default_factory=list)


class ApplicationLifecycle:
    def __init__(self, db: Session, roles: RoleResolver, catalog: ServiceCatalog,
                 clock: Callable[[], dt.datetime] = utcnow):
        self.db = db
        self.roles = roles
        self.catalog = catalog
        self.clock = clock

    # ---------- creation ----------

    def create(self, citizen_id: str, service_id: str, reason: str) -> Application:
        self.roles.assert_role(citizen_id, Role.CITIZEN)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Reason is required", field="reason")
        service = self.catalog.get_service(service_id)
        if not service.is_active:
            raise ValidationError("This service is not accepting applications", field="service_id")
        if self._open_application(citizen_id, service.id):
            raise DuplicateApplicationError(citizen_id, service.id)

        day = self.clock().date()
        try:
            number = generate_application_number(self.db, day)
            # creators serialize on the counter row, so created_at follows number order
            now = self.clock()
            rec = crud.add_application(
                self.db,
                id=str(uuid.uuid4()),
                application_number=number,
                citizen_id=citizen_id,
                service_id=service.id,
                service_name=service.name,
                fee=service.fee,
                reason=reason,
                status=ApplicationStatus.PENDING.value,
                remarks="",
                created_at=now,
                updated_at=now,
            )
            self.db.commit()
        except IntegrityError:
            # the partial unique index caught a concurrent duplicate
            self.db.rollback()
            if self._open_application(citizen_id, service.id):
                raise DuplicateApplicationError(citizen_id, service.id)
            raise
        self.db.refresh(rec)
        logger.info("Application created", extra={
            "application_id": rec.id, "application_number": rec.application_number,
            "citizen_id": citizen_id, "service_id": service.id,
        })
        return rec

    # ---------- transitions ----------

    def transition(self, application_id: str, actor_id: str, target_status: StatusLike,
                   remarks: Optional[str] = None) -> Application:
        target = parse_status(target_status)
        rec = self._load(application_id)
        current = ApplicationStatus(rec.status)

        if current in TERMINAL_STATUSES or (current, target) not in TRANSITIONS:
            logger.warning("Rejected transition %s -> %s on %s", current.value, target.value, application_id)
            raise InvalidTransitionError(current.value, target.value)
        self._authorize(TRANSITIONS[(current, target)], rec, actor_id, target)
        return self._write(rec, current, target, actor_id, remarks)

    def _write(self, rec: Application, current: ApplicationStatus, target: ApplicationStatus,
               actor_id: str, remarks: Optional[str]) -> Application:
        application_id = rec.id
        if remarks is None and target is ApplicationStatus.CANCELLED:
            remarks = CANCELLED_BY_USER
        values = {"status": target.value, "updated_at": self.clock()}
        if remarks is not None:
            values["remarks"] = remarks

        if not crud.update_application_if_status(self.db, application_id, current.value, **values):
            logger.warning("Lost transition race on %s (%s -> %s)", application_id, current.value, target.value)
            raise ConflictError(details={"application_id": application_id, "expected": current.value})
        self.db.refresh(rec)
        logger.info("Application transitioned", extra={
            "application_id": application_id, "from": current.value, "to": target.value, "actor_id": actor_id,
        })
        return rec

    def cancel(self, application_id: str, actor_id: str, remarks: Optional[str] = None) -> Application:
        return self.transition(application_id, actor_id, ApplicationStatus.CANCELLED, remarks)

    def batch_transition(self, application_ids: Iterable[str], actor_id: str, target_status: StatusLike,
                         remarks: Optional[str] = None) -> BatchResult:
        """Best-effort fan-out: each id is updated on its own and failures
        are collected. Earlier successes stay committed if a later id fails.

        ``processing`` follows the normal transition table. A batch approve or
        reject applies to any open application, pending ones included.
        """
        target = parse_status(target_status)
        if target not in BATCH_TARGETS:
            raise ValidationError(f"Batch updates cannot target '{target.value}'", field="status")
        self.roles.assert_any_role(actor_id, STAFF_ROLES)

        apply = self._decide if target in DECISIONS else self.transition
        result = BatchResult()
        for application_id in application_ids:
            try:
                apply(application_id, actor_id, target, remarks)
            except PanchayatError as exc:
                result.failed.append(BatchFailure(application_id, exc))
            else:
                result.succeeded.append(application_id)
        logger.info("Batch transition to %s: %d succeeded, %d failed",
                    target.value, len(result.succeeded), len(result.failed))
        return result

    def _decide(self, application_id: str, actor_id: str, target: ApplicationStatus,
                remarks: Optional[str]) -> Application:
        rec = self._load(application_id)
        current = ApplicationStatus(rec.status)
        if current not in OPEN_STATUSES:
            logger.warning("Rejected batch %s on %s (%s)", target.value, application_id, current.value)
            raise InvalidTransitionError(current.value, target.value)
        return self._write(rec, current, target, actor_id, remarks)

    def update_remarks(self, application_id: str, actor_id: str, remarks: str) -> Application:
        self.roles.assert_any_role(actor_id, STAFF_ROLES)
        rec = self._load(application_id)
        if not crud.update_application_if_status(self.db, application_id, rec.status,
                                                 remarks=remarks, updated_at=self.clock()):
            raise ConflictError(details={"application_id": application_id, "expected": rec.status})
        self.db.refresh(rec)
        return rec

    # ---------- queries ----------

    def get_application(self, application_id: str, actor_id: Optional[str] = None) -> Application:
        rec = self._load(application_id)
        if actor_id is not None and rec.citizen_id != actor_id:
            self.roles.assert_any_role(actor_id, STAFF_ROLES)
        return rec

    def list_applications(self, citizen_id: Optional[str] = None, service_id: Optional[str] = None,
                          status: Union[StatusLike, Iterable[StatusLike], None] = None,
                          actor_id: Optional[str] = None) -> List[Application]:
        """Newest first. Citizens only ever see their own applications."""
        if actor_id is not None and self.roles.resolve_role(actor_id) is Role.CITIZEN:
            citizen_id = actor_id
        return crud.list_applications(self.db, citizen_id=citizen_id, service_id=service_id,
                                      statuses=_status_set(status))

    def search_applications(self, query: str, actor_id: Optional[str] = None,
                            status: Union[StatusLike, Iterable[StatusLike], None] = None) -> List[Application]:
        q = (query or "").strip().lower()
        apps = self.list_applications(status=status, actor_id=actor_id)
        if not q:
            return apps
        return [a for a in apps if q in a.reason.lower() or q in a.service_name.lower()]

    # ---------- helpers ----------

    def _load(self, application_id: str) -> Application:
        rec = crud.get_application(self.db, application_id)
        if rec is None:
            raise NotFoundError("Application", application_id)
        return rec

    def _open_application(self, citizen_id: str, service_id: str) -> Optional[Application]:
        return crud.find_open_application(self.db, citizen_id, service_id, [s.value for s in OPEN_STATUSES])

    def _authorize(self, actor: Actor, rec: Application, actor_id: str, target: ApplicationStatus) -> None:
        role = self.roles.resolve_role(actor_id)
        if actor is Actor.STAFF:
            if role not in STAFF_ROLES:
                logger.warning("Denied %s on %s to %s (%s)", target.value, rec.id, actor_id, role.value)
                raise AuthorizationError(f"Only staff or administrators can mark an application {target.value}")
        elif actor is Actor.OWNER:
            if role is not Role.CITIZEN or rec.citizen_id != actor_id:
                logger.warning("Denied %s on %s to %s (%s)", target.value, rec.id, actor_id, role.value)
                raise AuthorizationError("Only the applicant can cancel this application")
        else:
            raise AssertionError(f"unhandled actor {actor}")
