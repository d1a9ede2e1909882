"""Local identity provider: bcrypt-hashed secrets and signed bearer tokens."""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import bcrypt
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from gram_panchayat.config import settings
from gram_panchayat.db import crud
from gram_panchayat.db.models import Principal
from gram_panchayat.exceptions import (
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "phone", "address")


def hash_secret(secret: str, rounds: Optional[int] = None) -> str:
    # Bcrypt has a 72 byte limit
    secret_bytes = secret.encode("utf-8")[:72]
    return bcrypt.hashpw(secret_bytes, bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)).decode("utf-8")


def verify_secret(secret: str, hashed: str) -> bool:
    return bcrypt.checkpw(secret.encode("utf-8")[:72], hashed.encode("utf-8"))


class IdentityProvider:
    def __init__(self, db: Session, secret_key: Optional[str] = None,
                 algorithm: Optional[str] = None, token_ttl: Optional[timedelta] = None):
        self.db = db
        self.secret_key = secret_key or settings.JWT_SECRET_KEY
        self.algorithm = algorithm or settings.JWT_ALGORITHM
        self.token_ttl = token_ttl or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    def create_principal(self, email: str, secret: str, profile: Dict[str, Any]) -> str:
        email = email.strip().lower()
        if crud.get_principal_by_email(self.db, email):
            raise EmailAlreadyRegisteredError(email)
        rec = crud.create_principal(
            self.db,
            id=str(uuid.uuid4()),
            email=email,
            hashed_secret=hash_secret(secret),
            **{k: profile.get(k) for k in PROFILE_FIELDS if profile.get(k) is not None},
        )
        logger.info("Principal created", extra={"principal_id": rec.id})
        return rec.id

    def authenticate(self, email: str, secret: str) -> str:
        rec = crud.get_principal_by_email(self.db, email.strip())
        if rec is None or not verify_secret(secret, rec.hashed_secret):
            logger.warning("Login failed", extra={"email": email})
            raise InvalidCredentialsError()
        return rec.id

    def issue_token(self, principal_id: str) -> str:
        claims = {"sub": principal_id, "exp": datetime.utcnow() + self.token_ttl, "type": "access"}
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> str:
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            raise InvalidTokenError()
        principal_id = payload.get("sub")
        if payload.get("type") != "access" or not principal_id:
            raise InvalidTokenError()
        if not self.principal_exists(principal_id):
            raise InvalidTokenError("Account no longer exists")
        return principal_id

    def principal_exists(self, principal_id: str) -> bool:
        return crud.get_principal(self.db, principal_id) is not None

    def get_principal(self, principal_id: str) -> Principal:
        rec = crud.get_principal(self.db, principal_id)
        if rec is None:
            raise NotFoundError("Principal", principal_id)
        return rec

    def update_profile(self, principal_id: str, profile: Dict[str, Any]) -> Principal:
        rec = self.get_principal(principal_id)
        fields = {k: profile[k] for k in PROFILE_FIELDS if profile.get(k) is not None}
        return crud.update_principal(self.db, rec, **fields) if fields else rec

    def delete_principal(self, principal_id: str) -> None:
        crud.delete_principal(self.db, self.get_principal(principal_id))
        logger.info("Principal deleted", extra={"principal_id": principal_id})
