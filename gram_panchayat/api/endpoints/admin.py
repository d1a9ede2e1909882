from typing import List, Optional
from fastapi import APIRouter, Depends, status
from gram_panchayat.api.deps import get_accounts, get_current_principal, get_reports, get_roles
from gram_panchayat.db.schemas import DashboardStatsOut, DeletedOut, PrincipalOut, ProvisionIn, RoleChangeIn
from gram_panchayat.services.accounts import AccountService
from gram_panchayat.services.reports import ReportService
from gram_panchayat.services.roles import Role, RoleResolver

router = APIRouter(prefix="/admin", tags=["admin"])


def _out(rec, role: Role) -> PrincipalOut:
    return PrincipalOut(id=rec.id, email=rec.email, name=rec.name, phone=rec.phone, address=rec.address,
                        role=role, created_at=rec.created_at)


@router.get("/stats", response_model=DashboardStatsOut)
def dashboard_stats(principal_id: str = Depends(get_current_principal),
                    reports: ReportService = Depends(get_reports)):
    return reports.dashboard_stats(principal_id)


@router.get("/users", response_model=List[PrincipalOut])
def list_users(role: Optional[Role] = None,
               principal_id: str = Depends(get_current_principal),
               accounts: AccountService = Depends(get_accounts)):
    return [_out(p, r) for p, r in accounts.list_users(principal_id, role)]


@router.post("/users", response_model=PrincipalOut, status_code=status.HTTP_201_CREATED)
def provision_user(body: ProvisionIn,
                   principal_id: str = Depends(get_current_principal),
                   accounts: AccountService = Depends(get_accounts)):
    new_id = accounts.provision(principal_id, body.email, body.password,
                                body.model_dump(include={"name", "phone", "address"}), body.role)
    rec = accounts.identity.get_principal(new_id)
    return _out(rec, body.role)


@router.patch("/users/{user_id}/role", response_model=PrincipalOut)
def change_role(user_id: str, body: RoleChangeIn,
                principal_id: str = Depends(get_current_principal),
                roles: RoleResolver = Depends(get_roles)):
    role = roles.change_role(principal_id, user_id, body.role)
    rec = roles.identity.get_principal(user_id)
    return PrincipalOut(id=rec.id, email=rec.email, name=rec.name, phone=rec.phone, address=rec.address,
                        role=role, created_at=rec.created_at)


@router.delete("/users/{user_id}", response_model=DeletedOut)
def delete_user(user_id: str,
                principal_id: str = Depends(get_current_principal),
                accounts: AccountService = Depends(get_accounts)):
    removed = accounts.delete_user(principal_id, user_id)
    return DeletedOut(id=user_id, applications_removed=removed)
