from fastapi import APIRouter, Depends, status
from gram_panchayat.api.deps import get_accounts, get_current_principal, get_identity, get_roles
from gram_panchayat.db.schemas import LoginIn, PrincipalOut, RegisterIn, TokenOut
from gram_panchayat.services.accounts import AccountService
from gram_panchayat.services.identity import IdentityProvider
from gram_panchayat.services.roles import RoleResolver

router = APIRouter(prefix="/auth", tags=["auth"])


def principal_out(identity: IdentityProvider, roles: RoleResolver, principal_id: str) -> PrincipalOut:
    rec = identity.get_principal(principal_id)
    return PrincipalOut(
        id=rec.id, email=rec.email, name=rec.name, phone=rec.phone, address=rec.address,
        role=roles.resolve_role(rec.id), created_at=rec.created_at,
    )


@router.post("/register", response_model=TokenOut, status_code=status.HTTP_201_CREATED)
def register(body: RegisterIn,
             accounts: AccountService = Depends(get_accounts),
             identity: IdentityProvider = Depends(get_identity)):
    principal_id = accounts.register(body.email, body.password, body.model_dump(include={"name", "phone", "address"}))
    return TokenOut(access_token=identity.issue_token(principal_id), principal_id=principal_id, role="citizen")


@router.post("/login", response_model=TokenOut)
def login(body: LoginIn,
          identity: IdentityProvider = Depends(get_identity),
          roles: RoleResolver = Depends(get_roles)):
    principal_id = identity.authenticate(body.email, body.password)
    role = roles.resolve_role(principal_id)
    return TokenOut(access_token=identity.issue_token(principal_id), principal_id=principal_id, role=role)


@router.get("/me", response_model=PrincipalOut)
def me(principal_id: str = Depends(get_current_principal),
       identity: IdentityProvider = Depends(get_identity),
       roles: RoleResolver = Depends(get_roles)):
    return principal_out(identity, roles, principal_id)
