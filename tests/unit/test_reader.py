"""
Unit tests for input reading and null cleanup.
"""

import io

import pytest

from schemaflow.ingest.cleanup import cleanup_null_values
from schemaflow.ingest.reader import (
    DocumentDecodeError,
    batched,
    decode_documents,
    iter_documents,
    iter_input,
)


def read_all(text, chunk_size=4):
    """Decode a whole text stream with a small chunk size."""
    return list(iter_documents(io.StringIO(text), chunk_size=chunk_size))


class TestIterDocuments:
    """Tests for stream decoding."""

    def test_json_array(self):
        """Elements of a top-level array are yielded."""
        assert read_all('[{"a": 1}, {"a": 2}]') == [{"a": 1}, {"a": 2}]

    def test_ndjson(self):
        """Newline-delimited documents are yielded in order."""
        assert read_all('{"a": 1}\n{"a": 2}\n') == [{"a": 1}, {"a": 2}]

    def test_concatenated_documents(self):
        """Documents with no separator are split."""
        assert read_all('{"a": 1}{"a": 2} {"a": 3}') == [{"a": 1}, {"a": 2}, {"a": 3}]

    def test_documents_split_across_chunks(self):
        """A document spanning read chunks is reassembled."""
        text = '{"name": "a long value spanning several chunks", "n": [1, 2, 3]}'
        assert read_all(text, chunk_size=3) == [
            {"name": "a long value spanning several chunks", "n": [1, 2, 3]}]

    def test_empty_input(self):
        """Empty input, blank input and an empty array yield nothing."""
        assert read_all("") == []
        assert read_all("  \n ") == []
        assert read_all("[]") == []

    def test_non_object_document(self):
        """A non-object array element is rejected."""
        with pytest.raises(DocumentDecodeError):
            read_all('[{"a": 1}, 2]')

    def test_malformed_json(self):
        """Malformed JSON raises DocumentDecodeError."""
        with pytest.raises(DocumentDecodeError):
            read_all('{"a": }')

    def test_unterminated_array(self):
        """An array missing its closing bracket is rejected."""
        with pytest.raises(DocumentDecodeError):
            read_all('[{"a": 1}')

    def test_lazy(self):
        """Documents before a malformed one are yielded."""
        documents = iter_documents(io.StringIO('{"a": 1}\n{"a": '))

        assert next(documents) == {"a": 1}
        with pytest.raises(DocumentDecodeError):
            next(documents)


class TestIterInput:
    """Tests for command line document sources."""

    def test_inline_json(self):
        """Inline arguments are parsed as JSON."""
        assert list(iter_input(['{"a": 1}'], io.StringIO())) == [{"a": 1}]

    def test_stdin(self):
        """'-' reads documents from stdin."""
        stdin = io.StringIO('{"a": 1}\n{"a": 2}')
        assert list(iter_input(["-"], stdin)) == [{"a": 1}, {"a": 2}]

    def test_file(self, tmp_path):
        """'@path' reads documents from a file."""
        path = tmp_path / "docs.json"
        path.write_text('[{"a": 1}]', encoding="utf-8")

        assert list(iter_input([f"@{path}"], io.StringIO())) == [{"a": 1}]

    def test_mixed_sources_in_order(self, tmp_path):
        """Sources are read in argument order."""
        path = tmp_path / "docs.json"
        path.write_text('{"src": "file"}', encoding="utf-8")

        documents = list(iter_input(
            ['{"src": "inline"}', f"@{path}", "-"], io.StringIO('{"src": "stdin"}')))

        assert [d["src"] for d in documents] == ["inline", "file", "stdin"]


class TestDecodeDocuments:
    """Tests for raw document mapping."""

    def test_bytes_text_and_dicts(self):
        """Bytes, text and dicts all decode to dicts."""
        documents = decode_documents([b'{"a": 1}', '{"b": 2}', {"c": 3}])

        assert documents == [{"a": 1}, {"b": 2}, {"c": 3}]

    def test_invalid_json(self):
        """Invalid JSON names the offending document index."""
        with pytest.raises(DocumentDecodeError) as exc_info:
            decode_documents([b'{"a": 1}', b"nope"])

        assert "Document 1" in str(exc_info.value)

    def test_non_object(self):
        """A raw document that is not an object is rejected."""
        with pytest.raises(DocumentDecodeError):
            decode_documents([b"[1, 2]"])


class TestBatched:
    """Tests for batching."""

    def test_batches(self):
        """The last batch holds the remainder."""
        assert list(batched(range(5), 2)) == [[0, 1], [2, 3], [4]]

    def test_empty(self):
        """An empty stream yields no batches."""
        assert list(batched([], 3)) == []

    def test_invalid_size(self):
        """A batch size below one is rejected."""
        with pytest.raises(ValueError):
            list(batched([1], 0))


class TestCleanupNullValues:
    """Tests for null and empty-array removal."""

    def test_removes_null_and_empty_arrays(self):
        """NULL fields and empty arrays are dropped."""
        document = {"a": 1, "b": None, "c": [], "d": "x"}

        assert cleanup_null_values(document) == {"a": 1, "d": "x"}

    def test_nested_objects(self):
        """Cleanup recurses into nested objects."""
        document = {"user": {"name": "a", "email": None, "tags": []}}

        assert cleanup_null_values(document) == {"user": {"name": "a"}}

    def test_objects_inside_arrays(self):
        """Cleanup recurses into objects inside arrays."""
        document = {"items": [{"id": 1, "note": None}, {"id": 2}]}

        assert cleanup_null_values(document) == {"items": [{"id": 1}, {"id": 2}]}

    def test_array_elements_kept(self):
        """NULL array elements are kept."""
        document = {"values": [1, None, 2]}

        assert cleanup_null_values(document) == {"values": [1, None, 2]}

    def test_empty_object_kept(self):
        """Empty objects are kept."""
        assert cleanup_null_values({"meta": {}}) == {"meta": {}}

    def test_input_not_modified(self):
        """The input document is left untouched."""
        document = {"a": None, "b": {"c": None}}

        cleanup_null_values(document)

        assert document == {"a": None, "b": {"c": None}}
