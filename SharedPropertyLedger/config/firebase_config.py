"""
Firebase configuration.

Initialises the firebase_admin app once and hands out the Firestore client.
get_db() returns None when Firestore cannot be initialised; callers treat
that as "Firestore is not available".
"""

import logging

import firebase_admin
from firebase_admin import credentials, firestore
from google.auth.exceptions import DefaultCredentialsError

from config.settings import FIREBASE_CREDENTIALS, FIREBASE_PROJECT_ID

logger = logging.getLogger(__name__)

_db = None


def _initialise_app() -> None:
    if firebase_admin._apps:
        return
    options = {"projectId": FIREBASE_PROJECT_ID} if FIREBASE_PROJECT_ID else None
    if FIREBASE_CREDENTIALS:
        cred = credentials.Certificate(FIREBASE_CREDENTIALS)
    else:
        # Falls back to GOOGLE_APPLICATION_CREDENTIALS / the metadata server
        cred = credentials.ApplicationDefault()
    firebase_admin.initialize_app(cred, options)


def get_db():
    """
    Get the Firestore client.

    Returns:
        google.cloud.firestore.Client | None: The client, or None if
            Firestore could not be initialised.
    """
    global _db
    if _db is not None:
        return _db
    try:
        _initialise_app()
        _db = firestore.client()
    except (ValueError, OSError, DefaultCredentialsError) as e:
        logger.error("Firestore initialisation failed: %s", e)
        return None
    return _db
