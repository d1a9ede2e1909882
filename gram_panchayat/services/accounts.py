"""Registration, provisioning and account deletion.

Deleting an account hard-deletes the citizen's applications first, then the
role assignment, then the identity, so no application is ever left pointing
at a principal that no longer exists. Day counters are left alone and
application numbers are never reused.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from gram_panchayat.db import crud
from gram_panchayat.db.models import Principal
from gram_panchayat.exceptions import AuthorizationError, NotFoundError, ValidationError
from gram_panchayat.services.identity import IdentityProvider
from gram_panchayat.services.roles import Role, RoleResolver

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, db: Session, identity: IdentityProvider, roles: RoleResolver):
        self.db = db
        self.identity = identity
        self.roles = roles

    def register(self, email: str, secret: str, profile: Dict[str, Any]) -> str:
        principal_id = self.identity.create_principal(email, secret, profile)
        self.roles.assign(principal_id, Role.CITIZEN)
        return principal_id

    def provision(self, actor_id: str, email: str, secret: str, profile: Dict[str, Any], role: Role) -> str:
        self.roles.assert_role(actor_id, Role.ADMINISTRATOR)
        principal_id = self.identity.create_principal(email, secret, profile)
        self.roles.assign(principal_id, role)
        logger.info("Account provisioned", extra={"principal_id": principal_id, "role": role.value, "actor_id": actor_id})
        return principal_id

    def ensure_administrator(self, email: str, secret: str) -> str:
        """Startup bootstrap; a no-op when the account already exists."""
        existing = crud.get_principal_by_email(self.db, email)
        if existing is not None:
            return existing.id
        principal_id = self.identity.create_principal(email, secret, {"name": "Administrator"})
        self.roles.assign(principal_id, Role.ADMINISTRATOR)
        logger.info("Bootstrap administrator created", extra={"principal_id": principal_id})
        return principal_id

    def list_users(self, actor_id: str, role: Optional[Role] = None) -> List[Tuple[Principal, Role]]:
        self.roles.assert_role(actor_id, Role.ADMINISTRATOR)
        rows = crud.list_principals(self.db, role.value if role else None)
        return [(p, Role(r) if r else Role.CITIZEN) for p, r in rows]

    def delete_user(self, actor_id: str, user_id: str) -> int:
        self.roles.assert_role(actor_id, Role.ADMINISTRATOR)
        if actor_id == user_id:
            raise ValidationError("Administrators cannot delete their own account here", field="user_id")
        return self._cascade(user_id, actor_id)

    def delete_own_account(self, principal_id: str) -> int:
        if self.roles.resolve_role(principal_id) is not Role.CITIZEN:
            raise AuthorizationError("Staff and administrator accounts are removed by an administrator")
        return self._cascade(principal_id, principal_id)

    def _cascade(self, user_id: str, actor_id: str) -> int:
        if not self.identity.principal_exists(user_id):
            raise NotFoundError("Principal", user_id)
        removed = crud.delete_applications_for_citizen(self.db, user_id)
        crud.delete_role(self.db, user_id)
        self.db.commit()
        self.identity.delete_principal(user_id)
        logger.info("Account deleted", extra={"principal_id": user_id, "applications_removed": removed, "actor_id": actor_id})
        return removed
