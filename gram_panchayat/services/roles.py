"""Role resolution.

Every principal sits in at most one of three partitions. Lookup order is
administrator, staff, citizen; a principal with no assignment is a citizen
unless ``STRICT_ROLES`` is enabled, in which case it is rejected.
"""
import logging
from enum import Enum
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from gram_panchayat.config import settings
from gram_panchayat.db import crud
from gram_panchayat.exceptions import AuthorizationError, NotFoundError, ValidationError
from gram_panchayat.services.identity import IdentityProvider

logger = logging.getLogger(__name__)


class Role(str, Enum):
    CITIZEN = "citizen"
    STAFF = "staff"
    ADMINISTRATOR = "administrator"


ROLE_PRECEDENCE = (Role.ADMINISTRATOR, Role.STAFF, Role.CITIZEN)
STAFF_ROLES = frozenset({Role.STAFF, Role.ADMINISTRATOR})


class RoleResolver:
    def __init__(self, db: Session, identity: IdentityProvider, strict: Optional[bool] = None):
        self.db = db
        self.identity = identity
        self.strict = settings.STRICT_ROLES if strict is None else strict

    def resolve_role(self, principal_id: str) -> Role:
        if not self.identity.principal_exists(principal_id):
            raise NotFoundError("Principal", principal_id)
        assigned = crud.get_role(self.db, principal_id)
        for role in ROLE_PRECEDENCE:
            if assigned == role.value:
                return role
        if assigned is not None:
            logger.error("Unknown role value %r for principal %s", assigned, principal_id)
        if self.strict:
            raise AuthorizationError("No role assigned to this account")
        return Role.CITIZEN

    def assert_role(self, principal_id: str, required_role: Role) -> Role:
        role = self.resolve_role(principal_id)
        if role is not required_role:
            raise AuthorizationError(f"Requires role '{required_role.value}'")
        return role

    def assert_any_role(self, principal_id: str, required_roles: Iterable[Role]) -> Role:
        required = frozenset(required_roles)
        role = self.resolve_role(principal_id)
        if role not in required:
            names = ", ".join(sorted(r.value for r in required))
            raise AuthorizationError(f"Requires one of: {names}")
        return role

    def assign(self, principal_id: str, role: Role) -> None:
        """Unchecked write, used at registration and bootstrap."""
        crud.set_role(self.db, principal_id, role.value)

    def change_role(self, actor_id: str, principal_id: str, new_role: Role) -> Role:
        self.assert_role(actor_id, Role.ADMINISTRATOR)
        if not self.identity.principal_exists(principal_id):
            raise NotFoundError("Principal", principal_id)
        if actor_id == principal_id and new_role is not Role.ADMINISTRATOR:
            raise ValidationError("Administrators cannot demote themselves", field="role")
        crud.set_role(self.db, principal_id, new_role.value)
        logger.info("Role changed", extra={"principal_id": principal_id, "role": new_role.value, "actor_id": actor_id})
        return new_role
