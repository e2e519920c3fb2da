from __future__ import annotations

from typing import Any

import pytest

from firebase_mcp.errors import ErrorKind, FirebaseMCPError
from firebase_mcp.firebase import FirebaseServices


class SpyFirestore:
    """In-memory stand-in for ``FirestoreService`` that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.documents: dict[tuple[str, str], dict[str, Any]] = {}

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))

    @property
    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def get_document(self, collection: str, document_id: str) -> dict[str, Any]:
        self._record("get_document", collection, document_id)
        data = self.documents.get((collection, document_id))
        if data is None:
            raise FirebaseMCPError(
                ErrorKind.NOT_FOUND,
                f"Document '{document_id}' not found in collection '{collection}'",
            )
        return {"id": document_id, **data}

    async def query_collection(self, collection: str, **options: Any) -> dict[str, Any]:
        self._record("query_collection", collection, options)
        results = [
            {"id": document_id, **data}
            for (name, document_id), data in self.documents.items()
            if name == collection
        ]
        return {
            "collection": collection,
            "count": len(results),
            "results": results,
            "pagination": {"hasMore": False, "lastDocumentId": None, "lastDocumentData": None},
        }

    async def add_document(self, collection: str, data: dict[str, Any]) -> str:
        self._record("add_document", collection, data)
        self.documents[(collection, "generated-id")] = dict(data)
        return "generated-id"

    async def set_document(
        self,
        collection: str,
        document_id: str,
        data: dict[str, Any],
        merge: bool = False,
    ) -> None:
        self._record("set_document", collection, document_id, data, merge)
        self.documents[(collection, document_id)] = dict(data)

    async def update_document(self, collection: str, document_id: str, data: dict[str, Any]) -> None:
        self._record("update_document", collection, document_id, data)
        self.documents.setdefault((collection, document_id), {}).update(data)

    async def delete_document(self, collection: str, document_id: str) -> None:
        self._record("delete_document", collection, document_id)
        self.documents.pop((collection, document_id), None)

    async def batch_write(self, operations: list[dict[str, Any]]) -> int:
        self._record("batch_write", operations)
        return len(operations)

    async def delete_collection(self, collection: str, batch_size: int = 100) -> int:
        self._record("delete_collection", collection, batch_size)
        keys = [key for key in self.documents if key[0] == collection]
        for key in keys:
            del self.documents[key]
        return len(keys)

    async def list_collections(self, document_path: str | None = None) -> list[str]:
        self._record("list_collections", document_path)
        return sorted({collection for collection, _ in self.documents})


class SpyAuth:
    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    @property
    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def list_users(self, max_results: int = 1000, page_token: str | None = None) -> dict[str, Any]:
        self.calls.append(("list_users", (max_results, page_token)))
        return {"users": [{"uid": "u1"}], "pageToken": None, "count": 1}

    async def get_user(self, uid=None, email=None, phone_number=None) -> dict[str, Any]:
        self.calls.append(("get_user", (uid, email, phone_number)))
        return {"uid": uid or "u1", "email": email}

    async def create_user(self, **properties: Any) -> dict[str, Any]:
        self.calls.append(("create_user", (properties,)))
        return {"uid": properties.get("uid", "new-user"), "email": properties.get("email")}

    async def update_user(self, uid: str, **properties: Any) -> dict[str, Any]:
        self.calls.append(("update_user", (uid, properties)))
        return {"uid": uid, **properties}

    async def delete_user(self, uid: str) -> None:
        self.calls.append(("delete_user", (uid,)))

    async def set_custom_claims(self, uid: str, claims: dict[str, Any]) -> None:
        self.calls.append(("set_custom_claims", (uid, claims)))


class SpyStorage:
    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    @property
    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def list_files(self, bucket=None, prefix=None, max_results=1000) -> dict[str, Any]:
        self.calls.append(("list_files", (bucket, prefix, max_results)))
        return {"bucket": bucket or "demo.appspot.com", "files": [], "count": 0}

    async def get_file_metadata(self, path: str, bucket=None) -> dict[str, Any]:
        self.calls.append(("get_file_metadata", (path, bucket)))
        return {"name": path, "size": "12"}

    async def get_download_url(self, path: str, expires_in: int = 3600, bucket=None) -> dict[str, Any]:
        self.calls.append(("get_download_url", (path, expires_in, bucket)))
        return {"url": f"https://signed.example/{path}", "path": path, "expiresIn": expires_in}

    async def get_upload_url(
        self,
        path: str,
        content_type: str = "application/octet-stream",
        expires_in: int = 3600,
        bucket=None,
    ) -> dict[str, Any]:
        self.calls.append(("get_upload_url", (path, content_type, expires_in, bucket)))
        return {"url": f"https://signed.example/{path}?upload", "path": path, "expiresIn": expires_in}

    async def delete_file(self, path: str, bucket=None) -> None:
        self.calls.append(("delete_file", (path, bucket)))


class FakeClock:
    def __init__(self) -> None:
        self.current = 0.0

    def now(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def spy_services() -> FirebaseServices:
    return FirebaseServices(firestore=SpyFirestore(), auth=SpyAuth(), storage=SpyStorage())


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
