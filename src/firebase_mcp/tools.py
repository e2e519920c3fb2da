"""Firebase tool handlers and their registration."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from .dispatcher import ToolRegistry
from .firebase import FirebaseServices
from .limits import RateLimiter
from .models import (
    AddDocumentRequest,
    BatchWriteRequest,
    CollectionArguments,
    CreateUserRequest,
    DeleteCollectionRequest,
    DeleteDocumentRequest,
    DeleteUserRequest,
    DownloadUrlRequest,
    FileRequest,
    GetDocumentRequest,
    GetUserRequest,
    ListCollectionsRequest,
    ListFilesRequest,
    ListUsersRequest,
    QueryCollectionRequest,
    SetCustomClaimsRequest,
    SetDocumentRequest,
    UpdateDocumentRequest,
    UpdateUserRequest,
    UploadUrlRequest,
)
from .policy import Capability, RequestContext, SecurityPolicy
from .validation import root_collection

UPLOAD_URL_NOTE = "Use this URL with an HTTP PUT request to upload the file directly."


def _collection_resource(args: CollectionArguments) -> list[str]:
    return [args.root_collection]


def _batch_resources(args: BatchWriteRequest) -> list[str]:
    return args.root_collections


def _list_collections_resources(args: ListCollectionsRequest) -> list[str]:
    if args.document_path:
        return [root_collection(args.document_path)]
    return []


class FirebaseToolset:
    """Handlers for every Firebase tool.

    Services are resolved per call through ``services_provider`` so the
    Firebase app is only initialized once a tool actually runs.
    """

    def __init__(self, services_provider: Callable[[], FirebaseServices]) -> None:
        self._services_provider = services_provider

    @property
    def services(self) -> FirebaseServices:
        return self._services_provider()

    # Firestore

    async def get_document(self, args: GetDocumentRequest, context: RequestContext) -> Any:
        return await self.services.firestore.get_document(args.collection, args.document_id)

    async def query_collection(
        self,
        args: QueryCollectionRequest,
        context: RequestContext,
    ) -> Any:
        return await self.services.firestore.query_collection(
            args.collection,
            where=args.where or [],
            order_by=args.order_by or [],
            limit=args.limit,
            start_after=args.start_after,
            start_at=args.start_at,
            end_before=args.end_before,
            end_at=args.end_at,
        )

    async def add_document(self, args: AddDocumentRequest, context: RequestContext) -> Any:
        document_id = await self.services.firestore.add_document(args.collection, args.data)
        return {
            "message": f"Document successfully added to collection '{args.collection}'",
            "documentId": document_id,
        }

    async def set_document(self, args: SetDocumentRequest, context: RequestContext) -> Any:
        await self.services.firestore.set_document(
            args.collection,
            args.document_id,
            args.data,
            merge=args.merge,
        )
        action = "merged" if args.merge else "set"
        return (
            f"Document '{args.document_id}' successfully {action} "
            f"in collection '{args.collection}'"
        )

    async def update_document(self, args: UpdateDocumentRequest, context: RequestContext) -> Any:
        await self.services.firestore.update_document(args.collection, args.document_id, args.data)
        return (
            f"Document '{args.document_id}' successfully updated "
            f"in collection '{args.collection}'"
        )

    async def delete_document(self, args: DeleteDocumentRequest, context: RequestContext) -> Any:
        await self.services.firestore.delete_document(args.collection, args.document_id)
        return (
            f"Document '{args.document_id}' successfully deleted "
            f"from collection '{args.collection}'"
        )

    async def batch_write(self, args: BatchWriteRequest, context: RequestContext) -> Any:
        count = await self.services.firestore.batch_write(args.operations)
        return {
            "message": f"Batch write of {count} operations completed successfully",
            "count": count,
        }

    async def delete_collection(
        self,
        args: DeleteCollectionRequest,
        context: RequestContext,
    ) -> Any:
        deleted = await self.services.firestore.delete_collection(
            args.collection,
            batch_size=args.batch_size,
        )
        return {
            "message": f"Deleted {deleted} documents from collection '{args.collection}'",
            "deletedCount": deleted,
        }

    async def list_collections(self, args: ListCollectionsRequest, context: RequestContext) -> Any:
        collections = await self.services.firestore.list_collections(args.document_path)
        return {"collections": collections, "count": len(collections)}

    # Authentication

    async def list_users(self, args: ListUsersRequest, context: RequestContext) -> Any:
        return await self.services.auth.list_users(
            max_results=args.max_results,
            page_token=args.page_token,
        )

    async def get_user(self, args: GetUserRequest, context: RequestContext) -> Any:
        return await self.services.auth.get_user(
            uid=args.uid,
            email=args.email,
            phone_number=args.phone_number,
        )

    async def create_user(self, args: CreateUserRequest, context: RequestContext) -> Any:
        properties = args.user_properties()
        if args.uid:
            properties["uid"] = args.uid
        user = await self.services.auth.create_user(**properties)
        return {"message": f"User '{user['uid']}' created successfully", "user": user}

    async def update_user(self, args: UpdateUserRequest, context: RequestContext) -> Any:
        user = await self.services.auth.update_user(args.uid, **args.user_properties())
        return {"message": f"User '{args.uid}' updated successfully", "user": user}

    async def delete_user(self, args: DeleteUserRequest, context: RequestContext) -> Any:
        await self.services.auth.delete_user(args.uid)
        return f"User '{args.uid}' successfully deleted"

    async def set_custom_claims(
        self,
        args: SetCustomClaimsRequest,
        context: RequestContext,
    ) -> Any:
        await self.services.auth.set_custom_claims(args.uid, args.claims)
        return f"Custom claims successfully set for user '{args.uid}'"

    # Storage

    async def list_files(self, args: ListFilesRequest, context: RequestContext) -> Any:
        return await self.services.storage.list_files(
            bucket=args.bucket,
            prefix=args.prefix,
            max_results=args.max_results,
        )

    async def get_file_metadata(self, args: FileRequest, context: RequestContext) -> Any:
        return await self.services.storage.get_file_metadata(args.path, bucket=args.bucket)

    async def get_download_url(self, args: DownloadUrlRequest, context: RequestContext) -> Any:
        return await self.services.storage.get_download_url(
            args.path,
            expires_in=args.expires_in,
            bucket=args.bucket,
        )

    async def get_upload_url(self, args: UploadUrlRequest, context: RequestContext) -> Any:
        result = await self.services.storage.get_upload_url(
            args.path,
            content_type=args.content_type,
            expires_in=args.expires_in,
            bucket=args.bucket,
        )
        return {**result, "contentType": args.content_type, "note": UPLOAD_URL_NOTE}

    async def delete_file(self, args: FileRequest, context: RequestContext) -> Any:
        await self.services.storage.delete_file(args.path, bucket=args.bucket)
        return f"File '{args.path}' successfully deleted"


def register_firebase_tools(registry: ToolRegistry, toolset: FirebaseToolset) -> ToolRegistry:
    """Register every Firebase tool on ``registry``."""
    registry.register(
        "get_document",
        GetDocumentRequest,
        toolset.get_document,
        description="Get a document from a Firestore collection.",
        resources=_collection_resource,
    )
    registry.register(
        "query_collection",
        QueryCollectionRequest,
        toolset.query_collection,
        description=(
            "Query a Firestore collection with where/orderBy clauses, a limit "
            "and pagination cursors."
        ),
        resources=_collection_resource,
    )
    registry.register(
        "add_document",
        AddDocumentRequest,
        toolset.add_document,
        description="Add a document with a generated id to a Firestore collection.",
        write=True,
        resources=_collection_resource,
    )
    registry.register(
        "set_document",
        SetDocumentRequest,
        toolset.set_document,
        description="Create or overwrite a Firestore document, optionally merging fields.",
        write=True,
        resources=_collection_resource,
    )
    registry.register(
        "update_document",
        UpdateDocumentRequest,
        toolset.update_document,
        description="Update fields of an existing Firestore document.",
        write=True,
        resources=_collection_resource,
    )
    registry.register(
        "delete_document",
        DeleteDocumentRequest,
        toolset.delete_document,
        description="Delete a Firestore document.",
        write=True,
        destructive=True,
        resources=_collection_resource,
    )
    registry.register(
        "batch_write",
        BatchWriteRequest,
        toolset.batch_write,
        description="Run up to 500 set/update/delete operations as one atomic batch.",
        write=True,
        destructive=True,
        resources=_batch_resources,
    )
    registry.register(
        "delete_collection",
        DeleteCollectionRequest,
        toolset.delete_collection,
        description="Delete every document in a Firestore collection, in batches.",
        write=True,
        destructive=True,
        resources=_collection_resource,
    )
    registry.register(
        "list_collections",
        ListCollectionsRequest,
        toolset.list_collections,
        description="List root collections, or the subcollections of a document.",
        resources=_list_collections_resources,
    )

    registry.register(
        "list_users",
        ListUsersRequest,
        toolset.list_users,
        description="List Firebase Authentication users, one page at a time.",
        capability=Capability.AUTH,
    )
    registry.register(
        "get_user",
        GetUserRequest,
        toolset.get_user,
        description="Look up a user by uid, email or phone number.",
        capability=Capability.AUTH,
    )
    registry.register(
        "create_user",
        CreateUserRequest,
        toolset.create_user,
        description="Create a Firebase Authentication user.",
        capability=Capability.AUTH,
        write=True,
    )
    registry.register(
        "update_user",
        UpdateUserRequest,
        toolset.update_user,
        description="Update a Firebase Authentication user.",
        capability=Capability.AUTH,
        write=True,
    )
    registry.register(
        "delete_user",
        DeleteUserRequest,
        toolset.delete_user,
        description="Delete a Firebase Authentication user.",
        capability=Capability.AUTH,
        write=True,
        destructive=True,
    )
    registry.register(
        "set_custom_claims",
        SetCustomClaimsRequest,
        toolset.set_custom_claims,
        description="Replace the custom claims of a user.",
        capability=Capability.AUTH,
        write=True,
    )

    registry.register(
        "list_files",
        ListFilesRequest,
        toolset.list_files,
        description="List objects in a Cloud Storage bucket.",
        capability=Capability.STORAGE,
    )
    registry.register(
        "get_file_metadata",
        FileRequest,
        toolset.get_file_metadata,
        description="Get metadata for a Cloud Storage object.",
        capability=Capability.STORAGE,
    )
    registry.register(
        "get_download_url",
        DownloadUrlRequest,
        toolset.get_download_url,
        description="Create a signed download URL for a Cloud Storage object.",
        capability=Capability.STORAGE,
    )
    registry.register(
        "get_upload_url",
        UploadUrlRequest,
        toolset.get_upload_url,
        description="Create a signed upload URL (HTTP PUT) for a Cloud Storage object.",
        capability=Capability.STORAGE,
        write=True,
    )
    registry.register(
        "delete_file",
        FileRequest,
        toolset.delete_file,
        description="Delete a Cloud Storage object.",
        capability=Capability.STORAGE,
        write=True,
        destructive=True,
    )
    return registry


def build_registry(
    services_provider: Callable[[], FirebaseServices],
    policy: SecurityPolicy | None = None,
    rate_limiter: RateLimiter | None = None,
) -> ToolRegistry:
    registry = ToolRegistry(policy=policy, rate_limiter=rate_limiter)
    return register_firebase_tools(registry, FirebaseToolset(services_provider))
