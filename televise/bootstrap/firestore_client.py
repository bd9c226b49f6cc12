"""
Firestore Client Management
============================
Initializes the firebase-admin app once and hands out its Firestore client.
"""

from typing import Any

import firebase_admin
from firebase_admin import credentials, firestore

from ..core.config import TeleviseConfig
from ..utils.logger import get_logger

logger = get_logger(__name__)


def get_firestore(config: TeleviseConfig) -> Any:
    """Return a Firestore client, initializing the default app if needed."""
    options = {"projectId": config.firebase_project_id} if config.firebase_project_id else None

    try:
        firebase_admin.get_app()
        logger.debug("firebase_already_initialized")
    except ValueError:
        try:
            # Application Default Credentials (Cloud Run, GOOGLE_APPLICATION_CREDENTIALS)
            firebase_admin.initialize_app(credentials.ApplicationDefault(), options)
            logger.info("firebase_initialized", mode="ApplicationDefault")
        except Exception as e:
            logger.warning("firebase_adc_unavailable", error=str(e))
            firebase_admin.initialize_app(options=options)
            logger.info("firebase_initialized", mode="default")

    return firestore.client()
