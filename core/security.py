"""
Security utilities: password hashing, session tokens, access-code generation
and audit logging.
"""

import hashlib
import json
import logging
import secrets
import string
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional, Set

import bcrypt
import jwt
from pydantic import BaseModel, ConfigDict, Field

from core.config import settings

logger = logging.getLogger("security.audit")

# 62-character alphabet for access codes
ACCESS_CODE_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits

TOKEN_TYPE_SESSION = "session"
TOKEN_TYPE_PASSWORD_RESET = "password_reset"


# ==================== Passwords ==================== #

def hash_password(password: str) -> str:
    """Hash a plaintext password with bcrypt."""
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Check a plaintext password against a bcrypt hash."""
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash or oversized password
        return False


def generate_temporary_password(length: Optional[int] = None) -> str:
    """Random lowercase alphanumeric password for provisioned accounts."""
    length = length or settings.temporary_password_length
    alphabet = string.ascii_lowercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


# ==================== Access codes ==================== #

def generate_code(alphabet: str = ACCESS_CODE_ALPHABET, length: int = 8) -> str:
    """
    Produce a uniformly random code.

    Args:
        alphabet: Characters to draw from
        length: Number of characters

    Returns:
        Candidate code. Uniqueness is checked by the caller.
    """
    if length <= 0:
        raise ValueError("Code length must be positive")
    if not alphabet:
        raise ValueError("Alphabet must not be empty")
    return "".join(secrets.choice(alphabet) for _ in range(length))


# ==================== Session tokens ==================== #

class SessionClaims(BaseModel):
    """Claims embedded in a session token."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    email: str
    username: str
    role: str
    first_login: bool = Field(alias="firstLogin")
    is_super_admin: bool = Field(alias="isSuperAdmin")
    onboarding_status: str = Field(alias="onboardingStatus")
    status: str


def create_session_token(
    claims: SessionClaims,
    secret_key: Optional[str] = None,
    algorithm: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Sign a time-boxed session token.

    Args:
        claims: Account state to embed
        secret_key: Signing key (defaults to settings)
        algorithm: JWT algorithm (defaults to settings)
        expires_delta: Token lifetime (defaults to settings)

    Returns:
        Encoded JWT
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.session_token_expire_minutes)

    issued_at = datetime.now(timezone.utc)
    payload = claims.model_dump(by_alias=True)
    payload.update(
        {
            "type": TOKEN_TYPE_SESSION,
            "iat": issued_at,
            "exp": issued_at + expires_delta,
            "jti": uuid.uuid4().hex,
        }
    )
    return jwt.encode(
        payload,
        secret_key or settings.jwt_secret_key,
        algorithm=algorithm or settings.jwt_algorithm,
    )


def verify_session_token(
    token: str,
    secret_key: Optional[str] = None,
    algorithm: Optional[str] = None,
) -> SessionClaims:
    """
    Decode and validate a session token.

    Raises:
        jwt.ExpiredSignatureError: Token has expired
        jwt.InvalidTokenError: Signature, type or claims are invalid
    """
    payload = jwt.decode(
        token,
        secret_key or settings.jwt_secret_key,
        algorithms=[algorithm or settings.jwt_algorithm],
        options={"require": ["exp", "iat"]},
    )
    if payload.get("type") != TOKEN_TYPE_SESSION:
        raise jwt.InvalidTokenError("Unexpected token type")
    try:
        return SessionClaims.model_validate(payload)
    except ValueError as exc:
        raise jwt.InvalidTokenError("Token claims are incomplete") from exc


# ==================== Password reset tokens ==================== #

def password_fingerprint(password_hash: str) -> str:
    """Short digest of a stored hash; a reset token is void once it changes."""
    return hashlib.sha256(password_hash.encode("utf-8")).hexdigest()[:32]


def create_password_reset_token(
    user_id: int,
    password_hash: str,
    secret_key: Optional[str] = None,
    algorithm: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Sign a password reset token bound to the account's current password.

    Setting a new password changes the fingerprint, so a token can only be
    redeemed once.
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.password_reset_expire_minutes)

    issued_at = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": TOKEN_TYPE_PASSWORD_RESET,
        "pwd": password_fingerprint(password_hash),
        "iat": issued_at,
        "exp": issued_at + expires_delta,
    }
    return jwt.encode(
        payload,
        secret_key or settings.jwt_secret_key,
        algorithm=algorithm or settings.jwt_algorithm,
    )


def verify_password_reset_token(
    token: str,
    secret_key: Optional[str] = None,
    algorithm: Optional[str] = None,
) -> tuple[int, str]:
    """
    Decode a password reset token.

    Returns:
        (user_id, password fingerprint)

    Raises:
        jwt.ExpiredSignatureError: Token has expired
        jwt.InvalidTokenError: Signature, type or claims are invalid
    """
    payload = jwt.decode(
        token,
        secret_key or settings.jwt_secret_key,
        algorithms=[algorithm or settings.jwt_algorithm],
        options={"require": ["exp", "iat", "sub"]},
    )
    if payload.get("type") != TOKEN_TYPE_PASSWORD_RESET:
        raise jwt.InvalidTokenError("Unexpected token type")
    try:
        return int(payload["sub"]), str(payload["pwd"])
    except (KeyError, ValueError) as exc:
        raise jwt.InvalidTokenError("Token claims are incomplete") from exc


# ==================== Audit logging ==================== #

class AuditAction(str, Enum):
    """Audit log action types."""
    LOGIN_SUCCEEDED = "LOGIN_SUCCEEDED"
    LOGIN_DENIED = "LOGIN_DENIED"
    PASSWORD_CHANGED = "PASSWORD_CHANGED"
    PASSWORD_RESET_REQUESTED = "PASSWORD_RESET_REQUESTED"
    PASSWORD_RESET = "PASSWORD_RESET"
    ACCESS_CODE_ISSUED = "ACCESS_CODE_ISSUED"
    ACCESS_CODE_CONSUMED = "ACCESS_CODE_CONSUMED"
    ACCOUNT_CREATED = "ACCOUNT_CREATED"
    ACCOUNT_STATUS_CHANGED = "ACCOUNT_STATUS_CHANGED"
    APPLICATION_CREATED = "APPLICATION_CREATED"
    APPLICATION_STATUS_CHANGED = "APPLICATION_STATUS_CHANGED"
    APPLICATION_WITHDRAWN = "APPLICATION_WITHDRAWN"


class ResourceType(str, Enum):
    """Resource types for audit logging."""
    USER = "USER"
    ACCESS_CODE = "ACCESS_CODE"
    APPLICATION = "APPLICATION"
    JOB = "JOB"


# PII fields that should be masked in logs
PII_FIELDS: Set[str] = {
    "email", "candidate_email", "phone", "full_name", "name",
    "username", "temporary_password", "code",
}


def mask_pii(data: Any, depth: int = 0) -> Any:
    """
    Recursively mask PII fields in data structures.

    Args:
        data: Data to mask (dict, list, or primitive)
        depth: Current recursion depth (max 10)

    Returns:
        Data with PII fields masked
    """
    if depth > 10:
        return "[MAX_DEPTH]"

    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            if key.lower() in PII_FIELDS:
                if isinstance(value, str) and len(value) > 0:
                    # Partial masking: show first char and length indicator
                    masked[key] = f"{value[0]}***[{len(value)}]"
                else:
                    masked[key] = "[MASKED]"
            else:
                masked[key] = mask_pii(value, depth + 1)
        return masked
    elif isinstance(data, list):
        return [mask_pii(item, depth + 1) for item in data[:5]]  # Limit list items
    else:
        return data


def log_audit_event(
    action: AuditAction,
    resource_type: ResourceType,
    resource_id: Optional[Any] = None,
    user_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
    contains_pii: bool = True,
) -> Dict[str, Any]:
    """
    Log an audit event as a structured JSON line.

    Returns:
        The event that was logged
    """
    event = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": "AUDIT",
        "action": action.value,
        "resource_type": resource_type.value,
        "resource_id": str(resource_id) if resource_id is not None else None,
        "user_id": user_id,
        "details": mask_pii(details) if details and contains_pii else details,
    }
    logger.info(json.dumps(event, default=str))
    return event
