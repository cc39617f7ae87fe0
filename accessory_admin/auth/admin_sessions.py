# accessory_admin/auth/admin_sessions.py
import asyncio
import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Response
from firebase_admin import auth
from firebase_admin import exceptions as firebase_exceptions

from accessory_admin.auth.session_tokens import AdminSession, load_admin, require_admin, verify_id_token
from accessory_admin.core import config
from accessory_admin.core.db import get_db
from accessory_admin.core.fraud import log_user_activity
from accessory_admin.core.schemas import SessionCreate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _public_profile(session: AdminSession):
    return {
        "uid": session.uid,
        "email": session.email,
        "displayName": session.profile.get("displayName") or session.profile.get("name"),
        "role": session.profile.get("role"),
    }


async def _record(db, uid, action, details):
    # an activity-log outage must not lock admins out
    try:
        await log_user_activity(db, uid, action, details)
    except Exception:
        logger.exception("Could not log %s activity for %s", action, uid)


@router.post("/session")
async def create_session(body: SessionCreate, response: Response, db=Depends(get_db)):
    """
    Exchange a freshly minted Firebase ID token for an httpOnly session cookie.

    The admin role is checked before the cookie is created, so a
    non-admin never holds a portal session, not even briefly.
    """
    claims = await verify_id_token(body.idToken, check_revoked=True)
    try:
        session = await load_admin(db, claims)
    except HTTPException as e:
        if e.status_code == 403:
            await _record(db, claims.get("uid") or claims.get("sub"), "login_failed", {"reason": "not_admin"})
        raise

    expires_in = timedelta(days=config.SESSION_COOKIE_DAYS)
    try:
        cookie = await asyncio.to_thread(auth.create_session_cookie, body.idToken, expires_in=expires_in)
    except (ValueError, firebase_exceptions.FirebaseError) as e:
        logger.error("Could not create session cookie for %s: %s", session.uid, e)
        raise HTTPException(status_code=401, detail="Failed to create a session")

    response.set_cookie(
        config.SESSION_COOKIE_NAME,
        cookie,
        max_age=int(expires_in.total_seconds()),
        httponly=True,
        secure=config.SESSION_COOKIE_SECURE,
        samesite="strict",
    )
    logger.info("Admin session created for %s", session.uid)
    await _record(db, session.uid, "login", {})
    return {"ok": True, "user": _public_profile(session)}


@router.post("/logout")
async def logout(response: Response, session: AdminSession = Depends(require_admin), db=Depends(get_db)):
    try:
        await asyncio.to_thread(auth.revoke_refresh_tokens, session.uid)
    except firebase_exceptions.FirebaseError as e:
        logger.warning("Failed to revoke tokens for %s: %s", session.uid, e)
    response.delete_cookie(config.SESSION_COOKIE_NAME)
    await _record(db, session.uid, "logout", {})
    return {"ok": True}


@router.get("/me")
async def me(session: AdminSession = Depends(require_admin)):
    return {"ok": True, "user": _public_profile(session)}
