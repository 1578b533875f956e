"""
Firebase credentials setup for multiple deployment environments.

Supports two methods of providing Firebase credentials:
1. Base64-encoded JSON (FIREBASE_CREDENTIALS_BASE64) - for Railway, Heroku, etc.
2. File path (FIREBASE_CREDENTIALS_PATH) - for local development, VPS

The Realtime Database URL (FIREBASE_DATABASE_URL) is always required. The
backend refuses to start without a store to talk to.
"""

import os
import json
import base64
import logging
import firebase_admin
from firebase_admin import credentials, db

logger = logging.getLogger(__name__)


def get_firebase_credentials():
    """
    Get Firebase credentials from environment.

    Returns:
        firebase_admin.credentials.Certificate: Firebase credentials object

    Raises:
        ValueError: If no valid credentials are found
    """
    base64_creds = os.getenv('FIREBASE_CREDENTIALS_BASE64')
    if base64_creds:
        try:
            json_str = base64.b64decode(base64_creds).decode('utf-8')
            cred_dict = json.loads(json_str)
            return credentials.Certificate(cred_dict)
        except Exception as e:
            raise ValueError(f"Failed to decode FIREBASE_CREDENTIALS_BASE64: {e}")

    cred_path = os.getenv('FIREBASE_CREDENTIALS_PATH')
    if cred_path:
        if not os.path.exists(cred_path):
            raise ValueError(f"FIREBASE_CREDENTIALS_PATH points to a missing file: {cred_path}")
        logger.info("Using Firebase credentials file")
        return credentials.Certificate(cred_path)

    raise ValueError(
        "No Firebase credentials found. Set either:\n"
        "  - FIREBASE_CREDENTIALS_BASE64 (base64-encoded service account JSON)\n"
        "  - FIREBASE_CREDENTIALS_PATH (path to service account JSON file)"
    )


def initialize_firebase(database_url):
    """
    Initialize the default Firebase app and return the `db` module.

    Safe to call more than once per process: an already initialized default
    app is reused.

    Raises:
        ValueError: If the database URL or the credentials are missing
    """
    if not database_url:
        raise ValueError("FIREBASE_DATABASE_URL must be set")

    try:
        firebase_admin.get_app()
        logger.info("Reusing existing Firebase app")
    except ValueError:
        cred = get_firebase_credentials()
        firebase_admin.initialize_app(cred, {'databaseURL': database_url})
        logger.info("Firebase app initialized")

    return db
