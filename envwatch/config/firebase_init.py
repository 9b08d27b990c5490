import base64
import json
import logging

import firebase_admin
from firebase_admin import credentials

from envwatch.config.settings import Settings

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ["type", "project_id", "private_key_id", "private_key", "client_email", "client_id"]


class FirebaseConfigError(Exception):
    pass


def decode_credentials(encoded: str) -> dict:
    """Decode the base64 service-account JSON carried in FIREBASE_CREDENTIALS."""
    try:
        cred_data = json.loads(base64.b64decode(encoded).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as e:
        raise FirebaseConfigError(f"FIREBASE_CREDENTIALS is not valid base64 JSON: {e}") from e
    if not all(field in cred_data for field in REQUIRED_FIELDS):
        raise FirebaseConfigError("Firebase credentials are incomplete or invalid")
    return cred_data


def initialize_firebase(settings: Settings):
    """Initialise the default firebase-admin app with its storage bucket.

    Returns the app, or None when no credentials are configured (storage mock
    mode). Safe to call more than once.
    """
    if not settings.storage_configured:
        logger.warning("FIREBASE_CREDENTIALS not set, image uploads will use the placeholder URL")
        return None
    if firebase_admin._apps:
        return firebase_admin.get_app()

    cred_data = decode_credentials(settings.firebase_credentials.get_secret_value())
    bucket = settings.firebase_storage_bucket or f"{cred_data['project_id']}.appspot.com"
    app = firebase_admin.initialize_app(
        credentials.Certificate(cred_data),
        {"projectId": cred_data["project_id"], "storageBucket": bucket},
    )
    logger.info("Firebase Admin SDK initialised with bucket %s", bucket)
    return app
