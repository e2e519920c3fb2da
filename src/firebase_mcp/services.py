"""Async Firestore, Auth and Storage collaborators over the Firebase Admin SDK.

Every SDK call runs in a worker thread so the event loop serving MCP requests
never blocks on network I/O. Platform exceptions are translated here into
``FirebaseMCPError`` values whose messages name the affected resource; the
message-matching fallback in ``errors.classify_message`` only sees failures
this module does not recognize.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any, TypeVar

from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import storage as firebase_storage
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1 import FieldFilter, Query

from .constants import (
    DEFAULT_DELETE_BATCH_SIZE,
    DEFAULT_LIST_FILES_MAX_RESULTS,
    DEFAULT_LIST_USERS_MAX_RESULTS,
    DEFAULT_QUERY_LIMIT,
    DEFAULT_SIGNED_URL_EXPIRY_SECONDS,
    DEFAULT_UPLOAD_CONTENT_TYPE,
)
from .errors import ErrorKind, FirebaseMCPError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Checked in order; subclasses must come before their bases.
_PLATFORM_ERROR_KINDS: tuple[tuple[tuple[type[BaseException], ...], ErrorKind], ...] = (
    (
        (firebase_exceptions.NotFoundError, google_exceptions.NotFound),
        ErrorKind.NOT_FOUND,
    ),
    (
        (
            firebase_exceptions.AlreadyExistsError,
            google_exceptions.AlreadyExists,
            google_exceptions.Conflict,
        ),
        ErrorKind.ALREADY_EXISTS,
    ),
    (
        (
            firebase_exceptions.PermissionDeniedError,
            firebase_exceptions.UnauthenticatedError,
            google_exceptions.PermissionDenied,
            google_exceptions.Forbidden,
            google_exceptions.Unauthenticated,
            google_exceptions.Unauthorized,
        ),
        ErrorKind.AUTHORIZATION,
    ),
    (
        (
            firebase_exceptions.InvalidArgumentError,
            google_exceptions.InvalidArgument,
            google_exceptions.BadRequest,
        ),
        ErrorKind.VALIDATION,
    ),
    (
        (
            firebase_exceptions.ResourceExhaustedError,
            google_exceptions.ResourceExhausted,
            google_exceptions.TooManyRequests,
        ),
        ErrorKind.RATE_LIMIT,
    ),
)

_KIND_MESSAGES = {
    ErrorKind.NOT_FOUND: "{resource} was not found.",
    ErrorKind.ALREADY_EXISTS: "{resource} already exists.",
    ErrorKind.AUTHORIZATION: "Permission denied for {resource}: {detail}",
    ErrorKind.VALIDATION: "Firebase rejected the request for {resource}: {detail}",
    ErrorKind.RATE_LIMIT: "Firebase quota exhausted for {resource}: {detail}",
}


def platform_error_kind(exc: BaseException) -> ErrorKind | None:
    """Return the error kind for a Firebase/Google platform exception, if any."""
    for exception_types, kind in _PLATFORM_ERROR_KINDS:
        if isinstance(exc, exception_types):
            return kind
    return None


def translate_platform_error(
    exc: BaseException,
    resource: str,
    not_found_message: str | None = None,
) -> FirebaseMCPError | None:
    kind = platform_error_kind(exc)
    if kind is None:
        return None
    if kind is ErrorKind.NOT_FOUND and not_found_message:
        message = not_found_message
    else:
        detail = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
        message = _KIND_MESSAGES[kind].format(resource=resource, detail=detail)
    return FirebaseMCPError(
        kind,
        message,
        details={"resource": resource, "exception": exc.__class__.__name__},
    )


async def _call_platform(
    func: Callable[..., T],
    *args: Any,
    resource: str,
    not_found_message: str | None = None,
    **kwargs: Any,
) -> T:
    try:
        return await asyncio.to_thread(func, *args, **kwargs)
    except FirebaseMCPError:
        raise
    except Exception as exc:  # noqa: BLE001
        translated = translate_platform_error(exc, resource, not_found_message)
        if translated is None:
            raise
        raise translated from exc


def _document_label(collection: str, document_id: str) -> str:
    return f"Document '{document_id}' in collection '{collection}'"


def _document_not_found(collection: str, document_id: str) -> str:
    return f"Document '{document_id}' not found in collection '{collection}'"


def _snapshot_to_dict(snapshot: Any) -> dict[str, Any]:
    return {"id": snapshot.id, **(snapshot.to_dict() or {})}


class FirestoreService:
    """Firestore document and collection operations."""

    def __init__(self, client: Any) -> None:
        self._client = client

    async def get_document(self, collection: str, document_id: str) -> dict[str, Any]:
        not_found = _document_not_found(collection, document_id)
        snapshot = await _call_platform(
            self._client.collection(collection).document(document_id).get,
            resource=_document_label(collection, document_id),
            not_found_message=not_found,
        )
        if not snapshot.exists:
            raise FirebaseMCPError(
                ErrorKind.NOT_FOUND,
                not_found,
                "Check the collection path and document id.",
                {"collection": collection, "document_id": document_id},
            )
        return _snapshot_to_dict(snapshot)

    async def query_collection(
        self,
        collection: str,
        *,
        where: Sequence[tuple[str, str, Any]] = (),
        order_by: Sequence[tuple[str, str]] = (),
        limit: int | None = None,
        start_after: Any = None,
        start_at: Any = None,
        end_before: Any = None,
        end_at: Any = None,
    ) -> dict[str, Any]:
        def _run() -> dict[str, Any]:
            collection_ref = self._client.collection(collection)
            query = collection_ref
            for field_path, operator, value in where:
                query = query.where(filter=FieldFilter(field_path, operator, value))
            for field_path, direction in order_by:
                query = query.order_by(
                    field_path,
                    direction=Query.DESCENDING if direction == "desc" else Query.ASCENDING,
                )
            # Start and end cursors are each mutually exclusive; "after"/"before" win.
            if start_after is not None:
                query = query.start_after(self._cursor(collection_ref, start_after))
            elif start_at is not None:
                query = query.start_at(self._cursor(collection_ref, start_at))
            if end_before is not None:
                query = query.end_before(self._cursor(collection_ref, end_before))
            elif end_at is not None:
                query = query.end_at(self._cursor(collection_ref, end_at))

            effective_limit = limit or DEFAULT_QUERY_LIMIT
            snapshots = list(query.limit(effective_limit).stream())
            last = snapshots[-1] if snapshots else None
            results = [_snapshot_to_dict(snapshot) for snapshot in snapshots]
            return {
                "collection": collection,
                "count": len(results),
                "results": results,
                "pagination": {
                    "hasMore": len(snapshots) == effective_limit,
                    "lastDocumentId": last.id if last is not None else None,
                    "lastDocumentData": (last.to_dict() or {}) if last is not None else None,
                },
            }

        return await _call_platform(_run, resource=f"collection '{collection}'")

    @staticmethod
    def _cursor(collection_ref: Any, value: Any) -> Any:
        # A bare string is a document id in the queried collection.
        if isinstance(value, str):
            snapshot = collection_ref.document(value).get()
            if not snapshot.exists:
                raise FirebaseMCPError(
                    ErrorKind.NOT_FOUND,
                    f"Cursor document '{value}' not found in collection '{collection_ref.id}'",
                )
            return snapshot
        return value

    async def add_document(self, collection: str, data: dict[str, Any]) -> str:
        _, reference = await _call_platform(
            self._client.collection(collection).add,
            data,
            resource=f"collection '{collection}'",
        )
        return reference.id

    async def set_document(
        self,
        collection: str,
        document_id: str,
        data: dict[str, Any],
        merge: bool = False,
    ) -> None:
        await _call_platform(
            self._client.collection(collection).document(document_id).set,
            data,
            merge=merge,
            resource=_document_label(collection, document_id),
        )

    async def update_document(
        self,
        collection: str,
        document_id: str,
        data: dict[str, Any],
    ) -> None:
        await _call_platform(
            self._client.collection(collection).document(document_id).update,
            data,
            resource=_document_label(collection, document_id),
            not_found_message=_document_not_found(collection, document_id),
        )

    async def delete_document(self, collection: str, document_id: str) -> None:
        await _call_platform(
            self._client.collection(collection).document(document_id).delete,
            resource=_document_label(collection, document_id),
        )

    async def batch_write(self, operations: Sequence[dict[str, Any]]) -> int:
        def _run() -> int:
            batch = self._client.batch()
            for operation in operations:
                reference = self._client.document(operation["path"])
                if operation["type"] == "set":
                    batch.set(reference, operation["data"], merge=operation.get("merge", False))
                elif operation["type"] == "update":
                    batch.update(reference, operation["data"])
                else:
                    batch.delete(reference)
            batch.commit()
            return len(operations)

        return await _call_platform(_run, resource=f"batch of {len(operations)} operations")

    async def delete_collection(
        self,
        collection: str,
        batch_size: int = DEFAULT_DELETE_BATCH_SIZE,
    ) -> int:
        def _run() -> int:
            collection_ref = self._client.collection(collection)
            deleted = 0
            while True:
                snapshots = list(collection_ref.limit(batch_size).stream())
                if not snapshots:
                    break
                batch = self._client.batch()
                for snapshot in snapshots:
                    batch.delete(snapshot.reference)
                batch.commit()
                deleted += len(snapshots)
                if len(snapshots) < batch_size:
                    break
            return deleted

        deleted = await _call_platform(_run, resource=f"collection '{collection}'")
        logger.info("Deleted %d documents from collection '%s'.", deleted, collection)
        return deleted

    async def list_collections(self, document_path: str | None = None) -> list[str]:
        def _run() -> list[str]:
            if document_path:
                collections = self._client.document(document_path).collections()
            else:
                collections = self._client.collections()
            return [collection.id for collection in collections]

        resource = f"document '{document_path}'" if document_path else "database root"
        return await _call_platform(_run, resource=resource)


def _timestamp_ms_to_iso(value: int | None) -> str | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()


def serialize_user(user: Any, include_provider_data: bool = False) -> dict[str, Any]:
    metadata = getattr(user, "user_metadata", None)
    payload: dict[str, Any] = {
        "uid": user.uid,
        "email": user.email,
        "displayName": user.display_name,
        "phoneNumber": user.phone_number,
        "photoURL": user.photo_url,
        "disabled": user.disabled,
        "emailVerified": user.email_verified,
        "metadata": {
            "creationTime": _timestamp_ms_to_iso(
                getattr(metadata, "creation_timestamp", None)
            ),
            "lastSignInTime": _timestamp_ms_to_iso(
                getattr(metadata, "last_sign_in_timestamp", None)
            ),
        },
        "customClaims": user.custom_claims,
    }
    if include_provider_data:
        payload["providerData"] = [
            {
                "uid": provider.uid,
                "providerId": provider.provider_id,
                "email": provider.email,
                "displayName": provider.display_name,
                "phoneNumber": provider.phone_number,
                "photoURL": provider.photo_url,
            }
            for provider in (user.provider_data or [])
        ]
    return payload


class AuthService:
    """Firebase Authentication user management."""

    def __init__(self, app: Any = None, auth_api: Any = None) -> None:
        self._app = app
        self._auth = auth_api or firebase_auth

    async def list_users(
        self,
        max_results: int = DEFAULT_LIST_USERS_MAX_RESULTS,
        page_token: str | None = None,
    ) -> dict[str, Any]:
        page = await _call_platform(
            self._auth.list_users,
            page_token=page_token,
            max_results=max_results,
            app=self._app,
            resource="user list",
        )
        users = [serialize_user(user) for user in page.users]
        return {
            "users": users,
            "pageToken": page.next_page_token or None,
            "count": len(users),
        }

    async def get_user(
        self,
        uid: str | None = None,
        email: str | None = None,
        phone_number: str | None = None,
    ) -> dict[str, Any]:
        if uid:
            lookup, value, label = self._auth.get_user, uid, f"User '{uid}'"
        elif email:
            lookup, value, label = self._auth.get_user_by_email, email, f"User with email '{email}'"
        elif phone_number:
            lookup, value, label = (
                self._auth.get_user_by_phone_number,
                phone_number,
                f"User with phone number '{phone_number}'",
            )
        else:
            raise FirebaseMCPError(
                ErrorKind.VALIDATION,
                "At least one of uid, email, or phoneNumber must be provided.",
            )
        user = await _call_platform(
            lookup,
            value,
            app=self._app,
            resource=label,
            not_found_message=f"{label} not found",
        )
        return serialize_user(user, include_provider_data=True)

    async def create_user(self, **properties: Any) -> dict[str, Any]:
        label = f"User '{properties['uid']}'" if properties.get("uid") else "User"
        if properties.get("email"):
            label = f"User with email '{properties['email']}'"
        user = await _call_platform(
            self._auth.create_user,
            app=self._app,
            resource=label,
            **properties,
        )
        return serialize_user(user)

    async def update_user(self, uid: str, **properties: Any) -> dict[str, Any]:
        user = await _call_platform(
            self._auth.update_user,
            uid,
            app=self._app,
            resource=f"User '{uid}'",
            not_found_message=f"User '{uid}' not found",
            **properties,
        )
        return serialize_user(user)

    async def delete_user(self, uid: str) -> None:
        await _call_platform(
            self._auth.delete_user,
            uid,
            app=self._app,
            resource=f"User '{uid}'",
            not_found_message=f"User '{uid}' not found",
        )

    async def set_custom_claims(self, uid: str, claims: dict[str, Any]) -> None:
        await _call_platform(
            self._auth.set_custom_user_claims,
            uid,
            claims,
            app=self._app,
            resource=f"User '{uid}'",
            not_found_message=f"User '{uid}' not found",
        )


def _blob_to_dict(blob: Any) -> dict[str, Any]:
    return {
        "name": blob.name,
        "bucket": blob.bucket.name if blob.bucket is not None else None,
        "size": blob.size,
        "contentType": blob.content_type,
        "updated": blob.updated,
        "timeCreated": blob.time_created,
        "md5Hash": blob.md5_hash,
        "generation": blob.generation,
        "metadata": blob.metadata or {},
    }


class StorageService:
    """Cloud Storage object operations on the project's buckets."""

    def __init__(
        self,
        app: Any = None,
        bucket_factory: Callable[[str | None], Any] | None = None,
    ) -> None:
        self._app = app
        self._bucket_factory = bucket_factory or self._default_bucket

    def _default_bucket(self, name: str | None) -> Any:
        return firebase_storage.bucket(name, app=self._app)

    def _bucket(self, name: str | None) -> Any:
        try:
            return self._bucket_factory(name)
        except ValueError as exc:
            raise FirebaseMCPError(
                ErrorKind.VALIDATION,
                f"No storage bucket available: {exc}",
                "Pass a bucket name or configure storage_bucket for the server.",
            ) from exc

    async def list_files(
        self,
        bucket: str | None = None,
        prefix: str | None = None,
        max_results: int = DEFAULT_LIST_FILES_MAX_RESULTS,
    ) -> dict[str, Any]:
        bucket_ref = self._bucket(bucket)

        def _run() -> list[dict[str, Any]]:
            blobs = bucket_ref.list_blobs(prefix=prefix or None, max_results=max_results)
            return [_blob_to_dict(blob) for blob in blobs]

        files = await _call_platform(_run, resource=f"bucket '{bucket_ref.name}'")
        return {"bucket": bucket_ref.name, "files": files, "count": len(files)}

    async def get_file_metadata(self, path: str, bucket: str | None = None) -> dict[str, Any]:
        bucket_ref = self._bucket(bucket)
        not_found = f"File '{path}' not found in bucket '{bucket_ref.name}'"
        blob = await _call_platform(
            bucket_ref.get_blob,
            path,
            resource=f"File '{path}' in bucket '{bucket_ref.name}'",
            not_found_message=not_found,
        )
        if blob is None:
            raise FirebaseMCPError(
                ErrorKind.NOT_FOUND,
                not_found,
                details={"path": path, "bucket": bucket_ref.name},
            )
        return _blob_to_dict(blob)

    async def get_download_url(
        self,
        path: str,
        expires_in: int = DEFAULT_SIGNED_URL_EXPIRY_SECONDS,
        bucket: str | None = None,
    ) -> dict[str, Any]:
        return await self._signed_url(path, expires_in, bucket, method="GET")

    async def get_upload_url(
        self,
        path: str,
        content_type: str = DEFAULT_UPLOAD_CONTENT_TYPE,
        expires_in: int = DEFAULT_SIGNED_URL_EXPIRY_SECONDS,
        bucket: str | None = None,
    ) -> dict[str, Any]:
        return await self._signed_url(
            path,
            expires_in,
            bucket,
            method="PUT",
            content_type=content_type,
        )

    async def _signed_url(
        self,
        path: str,
        expires_in: int,
        bucket: str | None,
        *,
        method: str,
        content_type: str | None = None,
    ) -> dict[str, Any]:
        bucket_ref = self._bucket(bucket)
        blob = bucket_ref.blob(path)
        options: dict[str, Any] = {
            "version": "v4",
            "expiration": timedelta(seconds=expires_in),
            "method": method,
        }
        if content_type:
            options["content_type"] = content_type
        url = await _call_platform(
            blob.generate_signed_url,
            resource=f"File '{path}' in bucket '{bucket_ref.name}'",
            **options,
        )
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        return {
            "url": url,
            "path": path,
            "bucket": bucket_ref.name,
            "expiresIn": expires_in,
            "expiresAt": expires_at.isoformat(),
        }

    async def delete_file(self, path: str, bucket: str | None = None) -> None:
        bucket_ref = self._bucket(bucket)
        await _call_platform(
            bucket_ref.blob(path).delete,
            resource=f"File '{path}' in bucket '{bucket_ref.name}'",
            not_found_message=f"File '{path}' not found in bucket '{bucket_ref.name}'",
        )
