import bcrypt as bcrypt_lib
from fastapi import Header, HTTPException, status
from src.auth.context import AdminContext
from src.auth.jwt import decode_admin_token
from src.config import settings


def _extract_bearer_token(authorization: str | None) -> str | None:
    """Extract token from 'Bearer <token>' header."""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def hash_password(password: str) -> str:
    """Hash password using bcrypt."""
    return bcrypt_lib.hashpw(password.encode(), bcrypt_lib.gensalt()).decode()


def verify_admin_credentials(email: str, password: str) -> bool:
    """Check login against the single operator configured in settings."""
    if not settings.admin_email or not settings.admin_password_hash:
        return False
    if email.strip().lower() != settings.admin_email.strip().lower():
        return False
    try:
        return bcrypt_lib.checkpw(password.encode(), settings.admin_password_hash.encode())
    except ValueError:
        return False


async def get_current_admin(authorization: str | None = Header(None)) -> AdminContext:
    """
    Admin JWT auth. Validates token type is 'admin' and subject is the configured operator.
    """
    token = _extract_bearer_token(authorization)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
        )

    payload = decode_admin_token(token)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired admin token",
        )

    if not settings.admin_email or payload.get("sub", "").lower() != settings.admin_email.strip().lower():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin not found",
        )

    return AdminContext(email=payload["sub"])
