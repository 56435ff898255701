import os
import json
import base64
from functools import lru_cache

import firebase_admin
from firebase_admin import credentials, firestore

from config import get_settings
from utils.logger import get_logger

log = get_logger(__name__)


def get_firebase_credentials():
    """
    Load credentials from:
    1. Base64 environment variable (Production)
    2. Local file (Development)
    """
    encoded_creds = os.getenv("FIREBASE_CREDENTIALS_BASE64")
    if encoded_creds:
        try:
            decoded_json = base64.b64decode(encoded_creds).decode("utf-8")
            return credentials.Certificate(json.loads(decoded_json))
        except (ValueError, TypeError) as e:
            log.error(f"Failed to decode FIREBASE_CREDENTIALS_BASE64: {e}")

    path = get_settings().firebase_credentials_path
    for candidate in (path, os.path.join("backend", path)):
        if os.path.exists(candidate):
            return credentials.Certificate(candidate)

    raise ValueError("No Firebase credentials found! Set FIREBASE_CREDENTIALS_BASE64 or provide serviceAccount.json")


@lru_cache
def get_db():
    """Firestore client, initializing the admin app on first use."""
    if not firebase_admin._apps:
        options = {}
        project_id = get_settings().firebase_project_id
        if project_id:
            options["projectId"] = project_id
        firebase_admin.initialize_app(get_firebase_credentials(), options or None)
        log.info("Firebase admin initialized")
    return firestore.client()
