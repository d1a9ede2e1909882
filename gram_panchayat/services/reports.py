import datetime as dt
from typing import Callable, Dict

from sqlalchemy.orm import Session

from gram_panchayat.db import crud
from gram_panchayat.db.models import utcnow
from gram_panchayat.services.lifecycle import ApplicationStatus
from gram_panchayat.services.roles import STAFF_ROLES, Role, RoleResolver


class ReportService:
    """Point-in-time counters for the three dashboards."""

    def __init__(self, db: Session, roles: RoleResolver, clock: Callable[[], dt.datetime] = utcnow):
        self.db = db
        self.roles = roles
        self.clock = clock

    def _start_of_day(self) -> dt.datetime:
        return dt.datetime.combine(self.clock().date(), dt.time.min)

    def _by_status(self, citizen_id: str | None = None) -> Dict[str, int]:
        counts = crud.count_applications_by_status(self.db, citizen_id=citizen_id)
        return {s.value: counts.get(s.value, 0) for s in ApplicationStatus}

    def dashboard_stats(self, actor_id: str) -> dict:
        self.roles.assert_role(actor_id, Role.ADMINISTRATOR)
        users_by_role = {r.value: 0 for r in Role}
        for _, role in crud.list_principals(self.db):
            users_by_role[role if role in users_by_role else Role.CITIZEN.value] += 1
        by_status = self._by_status()
        return {
            "total_users": sum(users_by_role.values()),
            "users_by_role": users_by_role,
            "total_applications": sum(by_status.values()),
            "application_statuses": by_status,
            "active_services": len(crud.list_services(self.db, is_active=True)),
            "today_activity": crud.count_applications(self.db, created_since=self._start_of_day()),
        }

    def staff_stats(self, actor_id: str) -> dict:
        self.roles.assert_any_role(actor_id, STAFF_ROLES)
        by_status = self._by_status()
        return {
            "pending_applications": by_status[ApplicationStatus.PENDING.value],
            "processing_applications": by_status[ApplicationStatus.PROCESSING.value],
            "processed_today": crud.count_applications(
                self.db,
                updated_since=self._start_of_day(),
                statuses=[ApplicationStatus.APPROVED.value, ApplicationStatus.REJECTED.value],
            ),
        }

    def citizen_stats(self, citizen_id: str) -> dict:
        by_status = self._by_status(citizen_id=citizen_id)
        return {"total_applications": sum(by_status.values()), **by_status}
