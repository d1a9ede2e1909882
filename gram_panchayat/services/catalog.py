import logging
import re
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from gram_panchayat.db import crud
from gram_panchayat.db.models import Service
from gram_panchayat.exceptions import NotFoundError, ValidationError
from gram_panchayat.services.roles import Role, RoleResolver

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("name", "description", "category", "fee", "requirements", "is_active")

DEFAULT_SERVICES: List[Dict[str, Any]] = [
    {"id": "birth-certificate", "name": "Birth Certificate", "category": "certificate", "fee": 50,
     "description": "Apply for official birth certificate with digital verification and quick processing.",
     "requirements": "Hospital birth record, Parent ID proof, Address proof"},
    {"id": "death-certificate", "name": "Death Certificate", "category": "certificate", "fee": 50,
     "description": "Apply for official death certificate for legal and administrative purposes.",
     "requirements": "Medical certificate, ID proof of deceased, Applicant ID proof"},
    {"id": "property-tax", "name": "Property Tax Payment", "category": "payment", "fee": 0,
     "description": "Pay your property tax online with instant receipt and payment history tracking.",
     "requirements": "Property documents, Previous tax receipts"},
    {"id": "trade-license", "name": "Trade License", "category": "license", "fee": 500,
     "description": "Apply for new trade license or renew existing license for your business.",
     "requirements": "Business registration, Shop/office address proof, ID proof"},
    {"id": "water-connection", "name": "Water Connection", "category": "utility", "fee": 200,
     "description": "Apply for new water connection or report issues with existing connection.",
     "requirements": "Property ownership proof, Address proof, ID proof"},
    {"id": "building-permit", "name": "Building Permit", "category": "permit", "fee": 1000,
     "description": "Apply for construction or renovation permits for residential and commercial buildings.",
     "requirements": "Building plans, Land ownership documents, NOC from neighbors"},
    {"id": "income-certificate", "name": "Income Certificate", "category": "certificate", "fee": 30,
     "description": "Apply for income certificate for various government schemes and applications.",
     "requirements": "Salary slips, Bank statements, Employment certificate"},
    {"id": "caste-certificate", "name": "Caste Certificate", "category": "certificate", "fee": 30,
     "description": "Apply for caste certificate for reservation benefits and government schemes.",
     "requirements": "Family tree documents, Previous caste certificates, ID proof"},
]


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


class ServiceCatalog:
    def __init__(self, db: Session, roles: RoleResolver):
        self.db = db
        self.roles = roles

    def get_service(self, service_id: str) -> Service:
        rec = crud.get_service(self.db, service_id)
        if rec is None:
            raise NotFoundError("Service", service_id)
        return rec

    def list_services(self, category: Optional[str] = None, active: Optional[bool] = None) -> List[Service]:
        return crud.list_services(self.db, category=category, is_active=active)

    def search_services(self, query: str, active: Optional[bool] = True) -> List[Service]:
        q = query.strip().lower()
        services = self.list_services(active=active)
        if not q:
            return services
        return [
            s for s in services
            if q in s.name.lower() or q in (s.description or "").lower() or q in s.category.lower()
        ]

    def create_service(self, actor_id: str, data: Dict[str, Any]) -> Service:
        self.roles.assert_role(actor_id, Role.ADMINISTRATOR)
        fields = {k: data[k] for k in EDITABLE_FIELDS if data.get(k) is not None}
        self._validate(fields, creating=True)
        service_id = data.get("id") or _slug(fields["name"])
        if not service_id or crud.get_service(self.db, service_id):
            service_id = f"{service_id or 'service'}-{uuid.uuid4().hex[:6]}"
        rec = crud.create_service(self.db, id=service_id, **fields)
        logger.info("Service created", extra={"service_id": rec.id, "actor_id": actor_id})
        return rec

    def update_service(self, actor_id: str, service_id: str, data: Dict[str, Any]) -> Service:
        """Partial update. Existing applications keep their own snapshot."""
        self.roles.assert_role(actor_id, Role.ADMINISTRATOR)
        rec = self.get_service(service_id)
        fields = {k: data[k] for k in EDITABLE_FIELDS if data.get(k) is not None}
        self._validate(fields, creating=False)
        if fields:
            rec = crud.update_service(self.db, rec, **fields)
            logger.info("Service updated", extra={"service_id": service_id, "fields": sorted(fields)})
        return rec

    def delete_service(self, actor_id: str, service_id: str) -> None:
        self.roles.assert_role(actor_id, Role.ADMINISTRATOR)
        crud.delete_service(self.db, self.get_service(service_id))
        logger.info("Service deleted", extra={"service_id": service_id, "actor_id": actor_id})

    def seed_defaults(self) -> int:
        if crud.count_services(self.db):
            return 0
        for entry in DEFAULT_SERVICES:
            crud.create_service(self.db, is_active=True, **entry)
        logger.info("Seeded %d default services", len(DEFAULT_SERVICES))
        return len(DEFAULT_SERVICES)

    @staticmethod
    def _validate(fields: Dict[str, Any], creating: bool) -> None:
        if creating:
            for required in ("name", "category"):
                if not str(fields.get(required) or "").strip():
                    raise ValidationError(f"'{required}' is required", field=required)
        if "name" in fields and not fields["name"].strip():
            raise ValidationError("'name' must not be empty", field="name")
        if "fee" in fields and (not isinstance(fields["fee"], int) or fields["fee"] < 0):
            raise ValidationError("'fee' must be a non-negative integer", field="fee")
