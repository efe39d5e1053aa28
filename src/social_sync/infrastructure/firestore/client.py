from __future__ import annotations

import logging

from google.cloud import firestore
from google.oauth2 import service_account

from social_sync.config import Settings
from social_sync.infrastructure.firestore.store import FirestoreDocumentStore

logger = logging.getLogger(__name__)


def create_document_store(settings: Settings) -> FirestoreDocumentStore:
    """Build the Firestore store from settings (application default credentials if no file)."""
    credentials = None
    if settings.FIREBASE_CREDENTIALS_FILE:
        credentials = service_account.Credentials.from_service_account_file(
            settings.FIREBASE_CREDENTIALS_FILE,
        )
    project = settings.FIREBASE_PROJECT_ID or None

    store = FirestoreDocumentStore(
        firestore.AsyncClient(project=project, credentials=credentials),
        firestore.Client(project=project, credentials=credentials),
    )
    logger.info("Firestore clients created (project=%s)", project or "<default>")
    return store
