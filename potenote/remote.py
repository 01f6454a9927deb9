"""Remote document store clients.

Documents live at slash-separated paths (``users/<uid>``,
``users/<uid>/quiz_history/<id>``). Writes are upserts with merge semantics,
so replaying the same write is harmless.
"""

from __future__ import annotations

import copy
import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol

import httpx

from .errors import RemoteStoreError

logger = logging.getLogger("potenote.remote")

Document = Dict[str, Any]


def user_path(uid: str) -> str:
    return f"users/{uid}"


def history_path(uid: str, collection: str) -> str:
    return f"users/{uid}/{collection}"


def merge_documents(base: Mapping[str, Any], update: Mapping[str, Any]) -> Document:
    """Field-level merge: fields in ``update`` replace stored ones, other stored fields survive."""
    merged: Document = copy.deepcopy(dict(base))
    for key, value in update.items():
        merged[key] = copy.deepcopy(value)
    return merged


class DocumentStore(Protocol):
    async def get_document(self, path: str) -> Optional[Document]:
        ...

    async def set_document(self, path: str, data: Mapping[str, Any], *, merge: bool = True) -> None:
        ...

    async def delete_document(self, path: str) -> None:
        ...

    async def query_collection(
        self,
        path: str,
        *,
        order_by: str = "createdAt",
        descending: bool = True,
        limit: int = 30,
    ) -> List[Document]:
        ...


class MemoryDocumentStore:
    """In-process store for offline play and tests. Set ``available`` to simulate outages."""

    def __init__(self) -> None:
        self.documents: Dict[str, Document] = {}
        self.available = True
        self.write_count = 0

    def _check(self) -> None:
        if not self.available:
            raise RemoteStoreError("document store unavailable")

    async def get_document(self, path: str) -> Optional[Document]:
        self._check()
        document = self.documents.get(path)
        return copy.deepcopy(document) if document is not None else None

    async def set_document(self, path: str, data: Mapping[str, Any], *, merge: bool = True) -> None:
        self._check()
        current = self.documents.get(path)
        if merge and current is not None:
            self.documents[path] = merge_documents(current, data)
        else:
            self.documents[path] = copy.deepcopy(dict(data))
        self.write_count += 1

    async def delete_document(self, path: str) -> None:
        self._check()
        self.documents.pop(path, None)

    async def query_collection(
        self,
        path: str,
        *,
        order_by: str = "createdAt",
        descending: bool = True,
        limit: int = 30,
    ) -> List[Document]:
        self._check()
        prefix = path.rstrip("/") + "/"
        children = [
            copy.deepcopy(document)
            for key, document in self.documents.items()
            if key.startswith(prefix) and "/" not in key[len(prefix):]
        ]
        children.sort(key=lambda document: str(document.get(order_by) or ""), reverse=descending)
        return children[:limit]


class HttpDocumentStore:
    """REST document API client built on ``httpx.AsyncClient``."""

    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = client or httpx.AsyncClient(base_url=base_url.rstrip("/"), headers=headers, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Optional[httpx.Response]:
        url = f"/documents/{path}"
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise RemoteStoreError(f"{method} {path} timed out") from exc
        except httpx.HTTPError as exc:
            raise RemoteStoreError(f"{method} {path} failed: {exc}") from exc
        if response.status_code == 404:
            return None
        if response.status_code in (401, 403):
            raise RemoteStoreError(f"{method} {path}: permission denied")
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RemoteStoreError(f"{method} {path} returned {exc.response.status_code}") from exc
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise RemoteStoreError(f"invalid JSON from {response.request.url}") from exc

    async def get_document(self, path: str) -> Optional[Document]:
        response = await self._request("GET", path)
        if response is None:
            return None
        payload = self._json(response)
        if not isinstance(payload, dict):
            raise RemoteStoreError(f"document {path} is not an object")
        return payload

    async def set_document(self, path: str, data: Mapping[str, Any], *, merge: bool = True) -> None:
        await self._request("PATCH" if merge else "PUT", path, json=dict(data))

    async def delete_document(self, path: str) -> None:
        await self._request("DELETE", path)

    async def query_collection(
        self,
        path: str,
        *,
        order_by: str = "createdAt",
        descending: bool = True,
        limit: int = 30,
    ) -> List[Document]:
        params = {"orderBy": order_by, "direction": "desc" if descending else "asc", "limit": str(limit)}
        response = await self._request("GET", path, params=params)
        if response is None:
            return []
        payload = self._json(response)
        documents = payload.get("documents") if isinstance(payload, dict) else None
        if not isinstance(documents, list):
            raise RemoteStoreError(f"collection {path} response has no documents list")
        return [document for document in documents if isinstance(document, dict)]


__all__ = [
    "Document",
    "DocumentStore",
    "HttpDocumentStore",
    "MemoryDocumentStore",
    "history_path",
    "merge_documents",
    "user_path",
]
