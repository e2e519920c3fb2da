"""Pydantic models for Firebase tool inputs and the response envelope."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .constants import (
    DEFAULT_DELETE_BATCH_SIZE,
    DEFAULT_LIST_FILES_MAX_RESULTS,
    DEFAULT_LIST_USERS_MAX_RESULTS,
    DEFAULT_SIGNED_URL_EXPIRY_SECONDS,
    DEFAULT_UPLOAD_CONTENT_TYPE,
    MAX_BATCH_OPERATIONS,
)
from .errors import ErrorKind
from .validation import (
    root_collection,
    validate_batch_operations,
    validate_collection_path,
    validate_document_data,
    validate_document_path,
    validate_limit,
    validate_order_by,
    validate_where_clauses,
)

# v4 signed URLs cannot outlive seven days.
MAX_SIGNED_URL_EXPIRY_SECONDS = 7 * 24 * 3600


class ToolArguments(BaseModel):
    """Base for tool inputs; accepts snake_case names and camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True)


class CollectionArguments(ToolArguments):
    collection: str = Field(..., description="Collection path, e.g. 'users' or 'users/u1/orders'")

    @field_validator("collection")
    @classmethod
    def _collection_path(cls, value: str) -> str:
        return validate_collection_path(value)

    @property
    def root_collection(self) -> str:
        return root_collection(self.collection)


class DocumentArguments(CollectionArguments):
    document_id: str = Field(..., alias="documentId", min_length=1)

    @model_validator(mode="after")
    def _document_path(self) -> DocumentArguments:
        validate_document_path(self.document_path)
        return self

    @property
    def document_path(self) -> str:
        return f"{self.collection}/{self.document_id}"


class GetDocumentRequest(DocumentArguments):
    pass


class DeleteDocumentRequest(DocumentArguments):
    pass


class QueryCollectionRequest(CollectionArguments):
    where: list[Any] | None = None
    order_by: list[Any] | None = Field(default=None, alias="orderBy")
    limit: int | None = None
    start_after: Any = Field(default=None, alias="startAfter")
    start_at: Any = Field(default=None, alias="startAt")
    end_before: Any = Field(default=None, alias="endBefore")
    end_at: Any = Field(default=None, alias="endAt")

    @field_validator("where", mode="before")
    @classmethod
    def _where(cls, value: Any) -> list[tuple[str, str, Any]]:
        return validate_where_clauses(value)

    @field_validator("order_by", mode="before")
    @classmethod
    def _order_by(cls, value: Any) -> list[tuple[str, str]]:
        return validate_order_by(value)

    @field_validator("limit", mode="before")
    @classmethod
    def _limit(cls, value: Any) -> int | None:
        return validate_limit(value)


class AddDocumentRequest(CollectionArguments):
    data: dict[str, Any]

    @field_validator("data", mode="before")
    @classmethod
    def _data(cls, value: Any) -> dict[str, Any]:
        return validate_document_data(value)


class SetDocumentRequest(DocumentArguments):
    data: dict[str, Any]
    merge: bool = False

    @field_validator("data", mode="before")
    @classmethod
    def _data(cls, value: Any) -> dict[str, Any]:
        return validate_document_data(value)


class UpdateDocumentRequest(DocumentArguments):
    data: dict[str, Any]

    @field_validator("data", mode="before")
    @classmethod
    def _data(cls, value: Any) -> dict[str, Any]:
        return validate_document_data(value)


class BatchWriteRequest(ToolArguments):
    operations: list[dict[str, Any]] = Field(
        ...,
        description=f"Up to {MAX_BATCH_OPERATIONS} set/update/delete operations",
    )

    @field_validator("operations", mode="before")
    @classmethod
    def _operations(cls, value: Any) -> list[dict[str, Any]]:
        return validate_batch_operations(value)

    @property
    def root_collections(self) -> list[str]:
        return [root_collection(operation["path"]) for operation in self.operations]


class DeleteCollectionRequest(CollectionArguments):
    batch_size: int = Field(
        default=DEFAULT_DELETE_BATCH_SIZE,
        alias="batchSize",
        ge=1,
        le=MAX_BATCH_OPERATIONS,
    )


class ListCollectionsRequest(ToolArguments):
    document_path: str | None = Field(default=None, alias="documentPath")

    @field_validator("document_path")
    @classmethod
    def _document_path(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return validate_document_path(value)


class ListUsersRequest(ToolArguments):
    max_results: int = Field(
        default=DEFAULT_LIST_USERS_MAX_RESULTS,
        alias="maxResults",
        ge=1,
        le=DEFAULT_LIST_USERS_MAX_RESULTS,
    )
    page_token: str | None = Field(default=None, alias="pageToken")


class GetUserRequest(ToolArguments):
    uid: str | None = None
    email: str | None = None
    phone_number: str | None = Field(default=None, alias="phoneNumber")

    @model_validator(mode="after")
    def _lookup_key(self) -> GetUserRequest:
        if not (self.uid or self.email or self.phone_number):
            raise ValueError("At least one of uid, email, or phoneNumber must be provided.")
        return self


class UserFields(ToolArguments):
    email: str | None = None
    password: str | None = Field(default=None, min_length=6)
    display_name: str | None = Field(default=None, alias="displayName")
    phone_number: str | None = Field(default=None, alias="phoneNumber")
    photo_url: str | None = Field(default=None, alias="photoURL")
    email_verified: bool | None = Field(default=None, alias="emailVerified")
    disabled: bool | None = None

    def user_properties(self) -> dict[str, Any]:
        """Return the fields set by the caller as firebase_admin keyword arguments."""
        return self.model_dump(
            include={
                "email",
                "password",
                "display_name",
                "phone_number",
                "photo_url",
                "email_verified",
                "disabled",
            },
            exclude_none=True,
        )


class CreateUserRequest(UserFields):
    uid: str | None = Field(default=None, min_length=1)


class UpdateUserRequest(UserFields):
    uid: str = Field(..., min_length=1)


class DeleteUserRequest(ToolArguments):
    uid: str = Field(..., min_length=1)


class SetCustomClaimsRequest(ToolArguments):
    uid: str = Field(..., min_length=1)
    claims: dict[str, Any]

    @field_validator("claims", mode="before")
    @classmethod
    def _claims(cls, value: Any) -> dict[str, Any]:
        return validate_document_data(value)


class ListFilesRequest(ToolArguments):
    bucket: str | None = None
    prefix: str | None = None
    max_results: int = Field(
        default=DEFAULT_LIST_FILES_MAX_RESULTS,
        alias="maxResults",
        ge=1,
        le=DEFAULT_LIST_FILES_MAX_RESULTS,
    )


class FileRequest(ToolArguments):
    path: str = Field(..., min_length=1, description="Object path inside the bucket")
    bucket: str | None = None


class DownloadUrlRequest(FileRequest):
    expires_in: int = Field(
        default=DEFAULT_SIGNED_URL_EXPIRY_SECONDS,
        alias="expiresIn",
        ge=1,
        le=MAX_SIGNED_URL_EXPIRY_SECONDS,
    )


class UploadUrlRequest(DownloadUrlRequest):
    content_type: str = Field(
        default=DEFAULT_UPLOAD_CONTENT_TYPE,
        alias="contentType",
        min_length=1,
    )


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolResponse(BaseModel):
    """Envelope returned for every tool call, success or failure."""

    model_config = ConfigDict(populate_by_name=True)

    content: list[TextContent]
    is_error: bool = Field(default=False, alias="isError")
    error_kind: ErrorKind | None = Field(default=None, alias="errorKind")

    @model_validator(mode="after")
    def _error_kind_matches_status(self) -> ToolResponse:
        if self.is_error and self.error_kind is None:
            raise ValueError("errorKind is required when isError is true")
        if not self.is_error and self.error_kind is not None:
            raise ValueError("errorKind is only allowed when isError is true")
        return self

    @property
    def text(self) -> str:
        return self.content[0].text if self.content else ""

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
