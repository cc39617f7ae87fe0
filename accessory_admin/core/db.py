# accessory_admin/core/db.py
import logging

import firebase_admin
from firebase_admin import credentials, firestore_async

from . import config

logger = logging.getLogger(__name__)

_client = None


def init_db():
    """Initialize the Firebase app and a single global Firestore client (idempotent)."""
    global _client
    if _client is None:
        try:
            app = firebase_admin.get_app()
        except ValueError:
            if config.FIREBASE_CREDENTIALS:
                cred = credentials.Certificate(config.FIREBASE_CREDENTIALS)
            else:
                cred = credentials.ApplicationDefault()
            options = {"projectId": config.FIREBASE_PROJECT_ID} if config.FIREBASE_PROJECT_ID else None
            app = firebase_admin.initialize_app(cred, options)
            logger.info("Firebase app initialized for project %s", app.project_id)
        _client = firestore_async.client(app)
    return _client


def close_db() -> None:
    global _client
    _client = None


def get_db():
    """FastAPI dependency returning the shared async Firestore client."""
    return init_db()
