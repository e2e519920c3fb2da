"""Firebase Admin app initialization and service wiring."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import firebase_admin
from firebase_admin import credentials, firestore

from .errors import ErrorKind, FirebaseMCPError
from .services import AuthService, FirestoreService, StorageService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FirebaseServices:
    firestore: FirestoreService
    auth: AuthService
    storage: StorageService


def build_app_options(
    project_id: str = "",
    database_url: str = "",
    storage_bucket: str = "",
) -> dict[str, str]:
    options: dict[str, str] = {}
    if project_id:
        options["projectId"] = project_id
    if database_url:
        options["databaseURL"] = database_url
    if storage_bucket:
        options["storageBucket"] = storage_bucket
    return options


def initialize_firebase(
    credentials_path: str = "",
    project_id: str = "",
    database_url: str = "",
    storage_bucket: str = "",
) -> firebase_admin.App:
    """Return the default Firebase app, initializing it on first use.

    A service-account JSON file is used when ``credentials_path`` is set;
    otherwise application default credentials are resolved by the SDK.
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    if credentials_path:
        path = Path(credentials_path).expanduser()
        if not path.is_file():
            raise ValueError(f"Firebase credentials file not found: {path}")
        credential: Any = credentials.Certificate(str(path))
        logger.info("Initializing Firebase with service account credentials from %s", path)
    else:
        credential = credentials.ApplicationDefault()
        logger.info("Initializing Firebase with application default credentials")

    options = build_app_options(
        project_id=project_id,
        database_url=database_url,
        storage_bucket=storage_bucket,
    )
    return firebase_admin.initialize_app(credential, options or None)


def build_services(app: firebase_admin.App) -> FirebaseServices:
    return FirebaseServices(
        firestore=FirestoreService(firestore.client(app)),
        auth=AuthService(app=app),
        storage=StorageService(app=app),
    )


def load_services(
    credentials_path: str = "",
    project_id: str = "",
    database_url: str = "",
    storage_bucket: str = "",
) -> FirebaseServices:
    """Initialize Firebase and build the services for the first tool call.

    Initialization failures are server misconfiguration, so they surface as
    ``INTERNAL`` and never reach the message classifier.
    """
    try:
        app = initialize_firebase(
            credentials_path=credentials_path,
            project_id=project_id,
            database_url=database_url,
            storage_bucket=storage_bucket,
        )
        return build_services(app)
    except FirebaseMCPError:
        raise
    except Exception as exc:
        logger.error("Firebase initialization failed: %s", exc)
        raise FirebaseMCPError(
            ErrorKind.INTERNAL,
            f"Firebase initialization failed: {exc}",
            "Check the credentials path, project id and application default credentials.",
        ) from exc
