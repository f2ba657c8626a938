import json
import logging
import os
from typing import Optional

import firebase_admin
from dotenv import load_dotenv
from firebase_admin import credentials

from app.core.config import settings

# Google client libraries read emulator hosts and credentials from os.environ
load_dotenv()

logger = logging.getLogger(__name__)


def init_firebase() -> Optional[firebase_admin.App]:
    """
    Initialize the Firebase Admin SDK if not already initialized.

    Returns the default app, or None when no credentials could be found.
    """
    if firebase_admin._apps:
        return firebase_admin.get_app()

    # 1. Try loading from JSON string in environment variable (Best for Cloud)
    if settings.FIREBASE_CREDENTIALS_JSON:
        try:
            creds_dict = json.loads(settings.FIREBASE_CREDENTIALS_JSON)
            app = firebase_admin.initialize_app(credentials.Certificate(creds_dict))
            logger.info("Firebase Admin SDK initialized from FIREBASE_CREDENTIALS_JSON")
            return app
        except Exception as e:
            logger.error(f"Failed to initialize Firebase from JSON env var: {e}")

    # 2. Fallback to file path
    possible_paths = [
        settings.FIREBASE_CREDENTIALS_PATH,
        os.path.join(os.getcwd(), settings.FIREBASE_CREDENTIALS_PATH),
    ]

    for path in possible_paths:
        if os.path.exists(path):
            try:
                app = firebase_admin.initialize_app(credentials.Certificate(path))
                logger.info(f"Firebase Admin SDK initialized with: {path}")
                return app
            except Exception as e:
                logger.error(f"Failed to initialize Firebase with {path}: {e}")

    logger.warning(f"Firebase credentials not found. Tried env var and paths: {possible_paths}")
    return None
