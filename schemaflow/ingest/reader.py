"""
Input reading for imports.

Reads JSON documents from text streams holding a JSON array, a sequence
of concatenated documents or newline-delimited JSON, and groups them into
batches.
"""

import io
import json
from itertools import islice
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Sequence, TextIO, TypeVar, Union

CHUNK_SIZE = 64 * 1024

T = TypeVar("T")

RawDocument = Union[bytes, str, Dict[str, Any]]


class DocumentDecodeError(ValueError):
    """Raised when input is not a stream of JSON objects."""
    pass


def iter_documents(stream: TextIO, chunk_size: int = CHUNK_SIZE) -> Iterator[Dict[str, Any]]:
    """
    Yield JSON objects from a text stream.

    Accepts top-level arrays of objects, concatenated objects and NDJSON,
    in any mix. The stream is read incrementally.

    Raises:
        DocumentDecodeError: On malformed JSON or a non-object document
    """
    decoder = json.JSONDecoder()
    buffer = ""
    pos = 0
    eof = False
    in_array = False
    count = 0

    while True:
        # Skip whitespace and array punctuation
        while pos < len(buffer):
            char = buffer[pos]
            if char.isspace() or (in_array and char == ","):
                pos += 1
            elif in_array and char == "]":
                in_array = False
                pos += 1
            elif not in_array and char == "[":
                in_array = True
                pos += 1
            else:
                break

        if pos >= len(buffer):
            if eof:
                break
            chunk = stream.read(chunk_size)
            buffer = buffer[pos:] + chunk
            pos = 0
            eof = not chunk
            continue

        try:
            value, end = decoder.raw_decode(buffer, pos)
        except json.JSONDecodeError as e:
            if eof:
                raise DocumentDecodeError(f"Invalid JSON after document {count}: {e.msg}") from e
            chunk = stream.read(chunk_size)
            buffer = buffer[pos:] + chunk
            pos = 0
            eof = not chunk
            continue

        if not isinstance(value, dict):
            raise DocumentDecodeError(
                f"Document {count} is not a JSON object: {type(value).__name__}")

        count += 1
        pos = end
        yield value

    if in_array:
        raise DocumentDecodeError("Unterminated JSON array")


def iter_input(args: Sequence[str], stdin: TextIO) -> Iterator[Dict[str, Any]]:
    """
    Yield documents from command line arguments.

    '-' reads standard input, '@path' reads a file, anything else is
    parsed as inline JSON.
    """
    for arg in args:
        if arg == "-":
            yield from iter_documents(stdin)
        elif arg.startswith("@"):
            with open(Path(arg[1:]), "r", encoding="utf-8") as f:
                yield from iter_documents(f)
        else:
            yield from iter_documents(io.StringIO(arg))


def decode_documents(raw_documents: Iterable[RawDocument]) -> List[Dict[str, Any]]:
    """
    Map raw JSON documents to decoded objects.

    Bytes and text are parsed, already decoded dicts pass through.

    Raises:
        DocumentDecodeError: If a document is not a JSON object
    """
    documents = []
    for index, raw in enumerate(raw_documents):
        if isinstance(raw, (bytes, bytearray, str)):
            try:
                raw = json.loads(raw)
            except ValueError as e:
                raise DocumentDecodeError(f"Document {index} is not valid JSON: {e}") from e
        if not isinstance(raw, dict):
            raise DocumentDecodeError(
                f"Document {index} is not a JSON object: {type(raw).__name__}")
        documents.append(raw)
    return documents


def batched(iterable: Iterable[T], size: int) -> Iterator[List[T]]:
    """Group an iterable into lists of at most size items."""
    if size < 1:
        raise ValueError("Batch size must be at least 1")
    iterator = iter(iterable)
    while True:
        batch = list(islice(iterator, size))
        if not batch:
            return
        yield batch
