from fastapi import APIRouter, Depends
from gram_panchayat.api.deps import get_accounts, get_current_principal, get_identity, get_reports, get_roles
from gram_panchayat.api.endpoints.auth import principal_out
from gram_panchayat.db.schemas import CitizenStatsOut, DeletedOut, PrincipalOut, ProfileUpdateIn
from gram_panchayat.services.accounts import AccountService
from gram_panchayat.services.identity import IdentityProvider
from gram_panchayat.services.reports import ReportService
from gram_panchayat.services.roles import RoleResolver

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me/stats", response_model=CitizenStatsOut)
def my_stats(principal_id: str = Depends(get_current_principal),
             reports: ReportService = Depends(get_reports)):
    return reports.citizen_stats(principal_id)


@router.patch("/me", response_model=PrincipalOut)
def update_profile(body: ProfileUpdateIn,
                   principal_id: str = Depends(get_current_principal),
                   identity: IdentityProvider = Depends(get_identity),
                   roles: RoleResolver = Depends(get_roles)):
    identity.update_profile(principal_id, body.model_dump(exclude_unset=True))
    return principal_out(identity, roles, principal_id)


@router.delete("/me", response_model=DeletedOut)
def delete_account(principal_id: str = Depends(get_current_principal),
                   accounts: AccountService = Depends(get_accounts)):
    removed = accounts.delete_own_account(principal_id)
    return DeletedOut(id=principal_id, applications_removed=removed)
