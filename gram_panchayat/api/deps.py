from typing import Generator, Optional
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from gram_panchayat.db.session import SessionLocal
from gram_panchayat.exceptions import InvalidTokenError
from gram_panchayat.services.accounts import AccountService
from gram_panchayat.services.catalog import ServiceCatalog
from gram_panchayat.services.identity import IdentityProvider
from gram_panchayat.services.lifecycle import ApplicationLifecycle
from gram_panchayat.services.reports import ReportService
from gram_panchayat.services.roles import RoleResolver

bearer = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_identity(db: Session = Depends(get_db)) -> IdentityProvider:
    return IdentityProvider(db)


def get_roles(db: Session = Depends(get_db), identity: IdentityProvider = Depends(get_identity)) -> RoleResolver:
    return RoleResolver(db, identity)


def get_catalog(db: Session = Depends(get_db), roles: RoleResolver = Depends(get_roles)) -> ServiceCatalog:
    return ServiceCatalog(db, roles)


def get_lifecycle(
    db: Session = Depends(get_db),
    roles: RoleResolver = Depends(get_roles),
    catalog: ServiceCatalog = Depends(get_catalog),
) -> ApplicationLifecycle:
    return ApplicationLifecycle(db, roles, catalog)


def get_accounts(
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity),
    roles: RoleResolver = Depends(get_roles),
) -> AccountService:
    return AccountService(db, identity, roles)


def get_reports(db: Session = Depends(get_db), roles: RoleResolver = Depends(get_roles)) -> ReportService:
    return ReportService(db, roles)


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    identity: IdentityProvider = Depends(get_identity),
) -> str:
    """Principal id from the bearer token; 401 when absent or invalid."""
    if credentials is None or not credentials.credentials:
        raise InvalidTokenError("Missing bearer token")
    return identity.verify_token(credentials.credentials)
