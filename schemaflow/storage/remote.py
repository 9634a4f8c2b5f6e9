"""
Remote collection store over HTTP.

Talks to a collection service exposing:
- GET  /collections/{name}            -> {"schema": {...}}
- PUT  /collections/{name}            <- wire schema
- POST /collections/{name}/documents  <- {"documents": [...]} -> {"documents": [...]}
- GET  /collections/{name}/documents  -> {"documents": [...]}

HTTP status codes are mapped to ErrorKind so the orchestrator never looks
at transport details.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from schemaflow.storage.adapter import CollectionStore, Document, ErrorKind, StorageError
from schemaflow.storage.validation import check_collection_name

logger = logging.getLogger(__name__)

_STATUS_KINDS = {
    404: ErrorKind.NOT_FOUND,
    400: ErrorKind.INVALID_ARGUMENT,
    409: ErrorKind.INVALID_ARGUMENT,
    422: ErrorKind.INVALID_ARGUMENT,
}


def error_from_response(response: httpx.Response, action: str) -> StorageError:
    """Build a StorageError carrying the kind matching the response status."""
    kind = _STATUS_KINDS.get(response.status_code, ErrorKind.OTHER)
    try:
        detail = response.json().get("message") or response.text
    except (ValueError, AttributeError):
        detail = response.text
    return StorageError(f"{action} failed ({response.status_code}): {detail}", kind)


def json_body(response: httpx.Response, action: str) -> Dict[str, Any]:
    """Decode a successful response body, which must be a JSON object."""
    try:
        body = response.json()
    except ValueError as e:
        raise StorageError(f"{action} returned invalid JSON: {e}", ErrorKind.OTHER) from e
    if not isinstance(body, dict):
        raise StorageError(
            f"{action} returned {type(body).__name__}, expected an object", ErrorKind.OTHER)
    return body


class HttpCollectionStore(CollectionStore):
    """Collection store backed by a remote collection service."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        client: Optional[httpx.Client] = None,
    ):
        """
        Initialize remote store.

        Args:
            base_url: Service root, e.g. 'http://localhost:8081/v1'
            timeout: Request timeout in seconds
            client: Preconfigured httpx client (tests pass a mock transport)
        """
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.Client(base_url=self.base_url, timeout=timeout)

    def _request(self, method: str, path: str, action: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise StorageError(f"{action} failed: {e}") from e

        if response.is_error:
            raise error_from_response(response, action)
        return response

    def describe_collection(self, name: str) -> bytes:
        path = f"/collections/{check_collection_name(name)}"
        action = f"Describe collection '{name}'"
        schema = json_body(self._request("GET", path, action), action).get("schema")
        if schema is None:
            raise StorageError(f"Describe collection '{name}' returned no schema")
        if isinstance(schema, str):
            return schema.encode("utf-8")
        return json.dumps(schema, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    def create_or_update_collection(self, name: str, schema: bytes) -> None:
        path = f"/collections/{check_collection_name(name)}"
        self._request(
            "PUT", path, f"Create or update collection '{name}'",
            content=schema, headers={"Content-Type": "application/json"},
        )
        logger.debug(f"Pushed schema of '{name}' to {self.base_url}")

    def insert(self, name: str, documents: List[Document]) -> List[Document]:
        path = f"/collections/{check_collection_name(name)}/documents"
        action = f"Insert into '{name}'"
        response = self._request("POST", path, action, json={"documents": documents})
        return json_body(response, action).get("documents", documents)

    def read_documents(self, name: str) -> List[Document]:
        path = f"/collections/{check_collection_name(name)}/documents"
        action = f"Read collection '{name}'"
        return json_body(self._request("GET", path, action), action).get("documents", [])

    def close(self) -> None:
        if self._owns_client:
            self.client.close()
