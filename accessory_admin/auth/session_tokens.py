# accessory_admin/auth/session_tokens.py
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from fastapi import Cookie, Depends, Header, HTTPException
from firebase_admin import auth
from firebase_admin import exceptions as firebase_exceptions

from accessory_admin.core import config
from accessory_admin.core.db import get_db
from accessory_admin.core.repositories import UserRepository

logger = logging.getLogger(__name__)

ACCESS_DENIED = "Access denied. Admin privileges required."


@dataclass(frozen=True)
class AdminSession:
    """Request-scoped identity of the admin making the call."""
    uid: str
    email: Optional[str] = None
    profile: Dict[str, Any] = field(default_factory=dict)


async def verify_id_token(id_token: str, check_revoked: bool = False) -> Dict[str, Any]:
    # firebase_admin is synchronous; revocation checks make a network call
    try:
        return await asyncio.to_thread(auth.verify_id_token, id_token, check_revoked=check_revoked)
    except (ValueError, firebase_exceptions.FirebaseError) as e:
        logger.warning("ID token rejected: %s", e)
        raise HTTPException(status_code=401, detail="Invalid authentication token")


async def verify_session_cookie(cookie: str) -> Dict[str, Any]:
    try:
        return await asyncio.to_thread(auth.verify_session_cookie, cookie, check_revoked=True)
    except (ValueError, firebase_exceptions.FirebaseError) as e:
        logger.warning("Session cookie rejected: %s", e)
        raise HTTPException(status_code=401, detail="Session expired")


async def load_admin(db, claims: Dict[str, Any]) -> AdminSession:
    """
    Resolve verified token claims to an admin session.

    The profile in ``users/{uid}`` must have role ``admin`` and must not be
    deactivated; anyone else is refused before a session exists.
    """
    uid = claims.get("uid") or claims.get("sub")
    if not uid:
        raise HTTPException(status_code=401, detail="Invalid token payload")
    profile = await UserRepository(db).find(uid)
    if not profile or profile.get("role") != "admin" or profile.get("isActive") is False:
        logger.warning("Admin access denied for user: %s", uid)
        raise HTTPException(status_code=403, detail=ACCESS_DENIED)
    return AdminSession(uid=uid, email=claims.get("email") or profile.get("email"), profile=profile)


async def require_admin(
    authorization: Optional[str] = Header(None),
    session_cookie: Optional[str] = Cookie(None, alias=config.SESSION_COOKIE_NAME),
    db=Depends(get_db),
) -> AdminSession:
    """Accepts a Firebase ID token (Bearer) or the portal's session cookie."""
    if authorization:
        if not authorization.startswith("Bearer "):
            raise HTTPException(status_code=401, detail="Missing Bearer token")
        claims = await verify_id_token(authorization.split(" ", 1)[1])
    elif session_cookie:
        claims = await verify_session_cookie(session_cookie)
    else:
        raise HTTPException(status_code=401, detail="Missing authorization header")
    return await load_admin(db, claims)
