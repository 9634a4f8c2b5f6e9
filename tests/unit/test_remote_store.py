"""
Unit tests for the remote HTTP collection store and the store factory.
"""

import json

import httpx
import pytest

from schemaflow.storage.adapter import ErrorKind, StorageError
from schemaflow.storage.factory import create_collection_store
from schemaflow.storage.filesystem import FilesystemCollectionStore
from schemaflow.storage.remote import HttpCollectionStore
from schemaflow.storage.sql import SqlCollectionStore

BASE_URL = "http://collections.test/v1"


class FakeService:
    """In-memory collection service behind an httpx.MockTransport."""

    def __init__(self):
        self.schemas = {}
        self.documents = {}
        self.requests = []
        self.fail_insert_with = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = request.url.path.split("/")
        # ['', 'v1', 'collections', name, ...]
        name = parts[3]
        is_documents = len(parts) > 4 and parts[4] == "documents"

        if not is_documents and request.method == "PUT":
            self.schemas[name] = json.loads(request.content)
            self.documents.setdefault(name, [])
            return httpx.Response(200, json={"status": "ok"})

        if name not in self.schemas:
            return httpx.Response(404, json={"message": f"collection {name} not found"})

        if not is_documents:
            return httpx.Response(200, json={"schema": self.schemas[name]})

        if request.method == "POST":
            if self.fail_insert_with:
                return httpx.Response(self.fail_insert_with, json={"message": "rejected"})
            docs = json.loads(request.content)["documents"]
            self.documents[name].extend(docs)
            return httpx.Response(200, json={"documents": docs})

        return httpx.Response(200, json={"documents": self.documents[name]})


@pytest.fixture
def service():
    """Fresh in-memory collection service."""
    return FakeService()


@pytest.fixture
def remote_store(service):
    """HTTP store wired to the fake service."""
    client = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(service))
    store = HttpCollectionStore(BASE_URL, client=client)
    yield store
    client.close()


class TestHttpCollectionStore:
    """Tests for the HTTP protocol mapping."""

    def test_create_and_describe(self, remote_store, service):
        """Test schema is pushed with PUT and described back byte for byte."""
        schema = b'{"title":"users","properties":{"id":{"type":"integer","format":"int64"}}}'

        remote_store.create_or_update_collection("users", schema)

        assert service.requests[0].method == "PUT"
        assert service.requests[0].url.path == "/v1/collections/users"
        assert remote_store.describe_collection("users") == schema

    def test_describe_missing_is_not_found(self, remote_store):
        """Test describing an unknown collection maps 404 to NOT_FOUND."""
        with pytest.raises(StorageError) as exc_info:
            remote_store.describe_collection("users")

        assert exc_info.value.kind == ErrorKind.NOT_FOUND
        assert "not found" in str(exc_info.value)

    def test_insert_and_read(self, remote_store):
        """Test inserted documents are returned and read back."""
        remote_store.create_or_update_collection("users", b'{"title":"users","properties":{}}')

        stored = remote_store.insert("users", [{"id": 1}])

        assert stored == [{"id": 1}]
        assert remote_store.read_documents("users") == [{"id": 1}]

    @pytest.mark.parametrize("status,kind", [
        (400, ErrorKind.INVALID_ARGUMENT),
        (409, ErrorKind.INVALID_ARGUMENT),
        (422, ErrorKind.INVALID_ARGUMENT),
        (500, ErrorKind.OTHER),
        (503, ErrorKind.OTHER),
    ])
    def test_status_mapping(self, remote_store, service, status, kind):
        """Test HTTP error statuses map to storage error kinds."""
        remote_store.create_or_update_collection("users", b'{"title":"users","properties":{}}')
        service.fail_insert_with = status

        with pytest.raises(StorageError) as exc_info:
            remote_store.insert("users", [{"id": 1}])

        assert exc_info.value.kind == kind
        assert str(status) in str(exc_info.value)

    def test_transport_error_is_other(self):
        """Test connection failures surface as OTHER."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(handler))
        store = HttpCollectionStore(BASE_URL, client=client)

        with pytest.raises(StorageError) as exc_info:
            store.describe_collection("users")

        assert exc_info.value.kind == ErrorKind.OTHER

    def test_invalid_name_rejected_locally(self, remote_store, service):
        """Test invalid names are rejected before any request is sent."""
        with pytest.raises(StorageError) as exc_info:
            remote_store.describe_collection("a/b")

        assert exc_info.value.kind == ErrorKind.INVALID_ARGUMENT
        assert service.requests == []

    def test_close_keeps_injected_client(self, remote_store):
        """Test close leaves a caller-supplied client open."""
        remote_store.close()

        assert not remote_store.client.is_closed


class TestMalformedResponses:
    """Successful responses whose body cannot be used."""

    @staticmethod
    def store_returning(response):
        client = httpx.Client(
            base_url=BASE_URL, transport=httpx.MockTransport(lambda request: response))
        return HttpCollectionStore(BASE_URL, client=client)

    def test_non_json_body_is_other(self):
        """Test a 200 response with an HTML body raises OTHER."""
        store = self.store_returning(httpx.Response(200, text="<html>gateway</html>"))

        with pytest.raises(StorageError) as exc_info:
            store.describe_collection("users")

        assert exc_info.value.kind == ErrorKind.OTHER
        assert "invalid JSON" in str(exc_info.value)

    def test_non_object_body_is_other(self):
        """Test a 200 response carrying a JSON list raises OTHER."""
        store = self.store_returning(httpx.Response(200, json=[{"id": 1}]))

        with pytest.raises(StorageError) as exc_info:
            store.read_documents("users")

        assert exc_info.value.kind == ErrorKind.OTHER
        assert "expected an object" in str(exc_info.value)

    def test_insert_with_invalid_body_is_other(self):
        """Test an unreadable insert response raises OTHER instead of ValueError."""
        store = self.store_returning(httpx.Response(200, content=b"not json"))

        with pytest.raises(StorageError) as exc_info:
            store.insert("users", [{"id": 1}])

        assert exc_info.value.kind == ErrorKind.OTHER


class TestStoreFactory:
    """Tests for backend selection."""

    def test_filesystem_backend(self, test_settings):
        """Test the default backend is the filesystem store."""
        store = create_collection_store(test_settings)

        assert isinstance(store, FilesystemCollectionStore)

    def test_sql_backend(self, test_settings):
        """Test the sql backend builds a SQL store."""
        settings = test_settings.model_copy(update={"storage_backend": "sql"})

        store = create_collection_store(settings)

        assert isinstance(store, SqlCollectionStore)

    def test_http_backend(self, test_settings):
        """Test the http backend builds a remote store for the configured URL."""
        settings = test_settings.model_copy(
            update={"storage_backend": "http", "remote_url": BASE_URL})

        store = create_collection_store(settings)

        assert isinstance(store, HttpCollectionStore)
        assert store.base_url == BASE_URL
        store.close()

    def test_unknown_backend(self, test_settings):
        """Test unknown backends are rejected."""
        settings = test_settings.model_copy(update={"storage_backend": "s3"})

        with pytest.raises(ValueError):
            create_collection_store(settings)

