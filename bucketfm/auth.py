"""
Authentication for bucketfm

Users are configured in YAML and authenticate with HTTP Basic. The
authenticated user's configured claims become the opaque claims mapping the
facade forwards to every command.
"""

import base64
import binascii
import logging
from typing import Any, Dict, Optional, Tuple
from fastapi import HTTPException, Request, Depends
from passlib.context import CryptContext

from .config import get_user_by_name
from .metrics import metrics_manager
from .models import UserInfo, ResponseCode

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str, is_bcrypt: bool = True) -> bool:
    """Verify a password against its hash"""
    if is_bcrypt:
        return pwd_context.verify(plain_password, hashed_password)
    else:
        # Plain text comparison (not recommended for production)
        return plain_password == hashed_password


def authenticate_user(username: str, password: str) -> Optional[UserInfo]:
    """Authenticate user by username and password"""
    user = get_user_by_name(username)
    if not user:
        logger.warning(f"Authentication failed: user not found: {username}")
        return None

    if not verify_password(password, user.pass_hash, user.is_bcrypt):
        logger.warning(f"Authentication failed: invalid password for user: {username}")
        return None

    logger.debug(f"User authenticated successfully: {username}")
    return user


def parse_basic_auth(authorization: str) -> Optional[Tuple[str, str]]:
    """Parse Basic Auth header"""
    if not authorization.startswith("Basic "):
        return None

    try:
        decoded = base64.b64decode(authorization[6:]).decode('utf-8')
    except (binascii.Error, UnicodeDecodeError) as e:
        logger.warning(f"Failed to parse Basic Auth header: {e}")
        return None

    if ':' not in decoded:
        return None

    username, password = decoded.split(':', 1)
    return username, password


def get_current_user_optional(request: Request) -> Optional[UserInfo]:
    """Get current authenticated user (optional)"""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    credentials = parse_basic_auth(auth_header)
    if not credentials:
        return None

    username, password = credentials
    return authenticate_user(username, password)


def get_current_user(request: Request) -> UserInfo:
    """Get current authenticated user (required)"""
    user = get_current_user_optional(request)
    if not user:
        metrics_manager.increment_auth_failures()
        raise HTTPException(
            status_code=401,
            detail={
                "code": ResponseCode.UNAUTHORIZED.value,
                "msg": "Authentication required",
                "data": None
            },
            headers={"WWW-Authenticate": "Basic"},
        )
    return user


def get_claims(user: UserInfo = Depends(get_current_user)) -> Dict[str, Any]:
    """Dependency returning the claims of the authenticated user"""
    return user.to_claims()


def create_basic_auth_header(username: str, password: str) -> str:
    """Create Basic Auth header value"""
    credentials = f"{username}:{password}"
    encoded = base64.b64encode(credentials.encode('utf-8')).decode('ascii')
    return f"Basic {encoded}"


def get_user_from_request(request: Request) -> Optional[str]:
    """Extract username from request without full authentication"""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    credentials = parse_basic_auth(auth_header)
    if not credentials:
        return None

    return credentials[0]
