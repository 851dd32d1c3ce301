"""JSON/YAML document decoder for protocol messages.

Policy and schema sources are written either as a JSON object or as a single
YAML document. The decoder peeks at the start of the input to pick a format,
normalizes YAML into the protocol's canonical JSON form, and unmarshals into
the destination message.

Decoding pipeline:
    read_bounded()   - read at most MAX_DOCUMENT_BYTES
    sniff_format()   - "{" after leading whitespace means JSON, else YAML
    _DECODERS[fmt]   - format strategy producing a JSON-compatible object
    _unmarshal()     - google.protobuf.json_format.ParseDict into the message

YAML input must hold exactly one document. A single "---" separator is
allowed before the content; a second separator, or one that follows content,
is rejected instead of silently picking the first document.
"""

from __future__ import annotations

__all__ = [
    "DocumentFormat",
    "read_bounded",
    "read_json_or_yaml",
    "sniff_format",
]

import json
import logging
from collections.abc import Callable
from enum import Enum
from typing import IO, Any, TypeVar

import yaml
from google.protobuf import json_format
from google.protobuf.message import Message

from pdp_client.constants import MAX_DOCUMENT_BYTES, SNIFF_BUFFER_BYTES
from pdp_client.exceptions import (
    DocumentConversionError,
    InputTooLargeError,
    MultipleDocumentsError,
    SchemaMismatchError,
    SourceReadError,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=Message)

_JSON_START = b"{"
_YAML_SEPARATOR = b"---"
_YAML_COMMENT = b"#"
_YAML_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"
_READ_CHUNK_BYTES = 64 * 1024


class DocumentFormat(str, Enum):
    """Source document format selected by sniff_format()."""

    JSON = "json"
    YAML = "yaml"


def read_json_or_yaml(src: IO[bytes] | IO[str], dest: M) -> M:
    """Decode a JSON or YAML document from a stream into a protocol message.

    Args:
        src: Readable stream (binary or text).
        dest: Message instance to populate.

    Returns:
        The populated dest message.

    Raises:
        SourceReadError: If reading the stream fails or it is not UTF-8.
        InputTooLargeError: If the stream exceeds MAX_DOCUMENT_BYTES.
        MultipleDocumentsError: If YAML input holds more than one document.
        DocumentConversionError: If YAML/JSON text cannot be parsed.
        SchemaMismatchError: If the document does not fit the message schema.
    """
    data = read_bounded(src)
    fmt = sniff_format(data[:SNIFF_BUFFER_BYTES])
    logger.debug("Decoding %s document (%d bytes) into %s", fmt.value, len(data), dest.DESCRIPTOR.full_name)

    document = _DECODERS[fmt](data)
    _unmarshal(document, dest)
    return dest


def sniff_format(prelude: bytes) -> DocumentFormat:
    """Classify a document by its first non-whitespace byte.

    Args:
        prelude: Leading bytes of the document.

    Returns:
        DocumentFormat.JSON if the content starts with "{", else YAML.
    """
    if prelude.lstrip().startswith(_JSON_START):
        return DocumentFormat.JSON
    return DocumentFormat.YAML


def read_bounded(src: IO[bytes] | IO[str], limit: int = MAX_DOCUMENT_BYTES) -> bytes:
    """Read a stream to the end, refusing input larger than limit.

    Reads in chunks so streams that return short reads are drained fully.

    Raises:
        SourceReadError: If the stream raises while reading.
        InputTooLargeError: If more than limit bytes are available.
    """
    chunks: list[bytes] = []
    total = 0

    while total <= limit:
        try:
            chunk = src.read(min(_READ_CHUNK_BYTES, limit + 1 - total))
        except (OSError, ValueError) as e:
            raise SourceReadError(f"failed to read from source: {e}") from e

        if not chunk:
            break
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")

        chunks.append(chunk)
        total += len(chunk)

    if total > limit:
        raise InputTooLargeError(limit)

    return b"".join(chunks)


# =============================================================================
# Format strategies
# =============================================================================


def _decode_json(data: bytes) -> Any:
    """Parse JSON text into a JSON-compatible object."""
    text = _decode_utf8(data)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise DocumentConversionError(f"failed to parse JSON: {e}") from e


class _JSONCompatibleLoader(yaml.SafeLoader):
    """SafeLoader that keeps timestamp-looking scalars as strings.

    JSON has no timestamp type, so "2001-12-14t21:59:43.10-05:00" must reach
    the message exactly as written, the same as it would from JSON input.
    """


_JSONCompatibleLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _YAML_TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _decode_yaml(data: bytes) -> Any:
    """Parse a single YAML document and convert it to its JSON form."""
    buffered = _collect_single_document(data)

    try:
        document = yaml.load(_decode_utf8(buffered), Loader=_JSONCompatibleLoader)
    except yaml.YAMLError as e:
        raise DocumentConversionError(f"failed to convert YAML to JSON: {e}") from e

    if document is None:
        raise DocumentConversionError("failed to convert YAML to JSON: document is empty")

    # Explicitly tagged YAML-only values (!!set, !!binary) have no JSON form
    try:
        return json.loads(json.dumps(document))
    except (TypeError, ValueError) as e:
        raise DocumentConversionError(f"failed to convert YAML to JSON: {e}") from e


def _collect_single_document(data: bytes) -> bytes:
    """Keep the lines of the only YAML document, rejecting multi-document input.

    Comment lines are dropped, as are blank lines before the first content.

    Raises:
        MultipleDocumentsError: On a second separator, or a separator after content.
    """
    kept: list[bytes] = []
    num_docs = 0
    seen_content = False

    for line in data.splitlines():
        trimmed = line.strip()

        if trimmed.startswith(_YAML_COMMENT):
            continue

        if not seen_content and not trimmed:
            continue
        seen_content = True

        if line.startswith(_YAML_SEPARATOR):
            num_docs += 1
            if num_docs > 1 or kept:
                raise MultipleDocumentsError()

        kept.append(line)

    return b"\n".join(kept) + b"\n"


_DECODERS: dict[DocumentFormat, Callable[[bytes], Any]] = {
    DocumentFormat.JSON: _decode_json,
    DocumentFormat.YAML: _decode_yaml,
}


# =============================================================================
# Helpers
# =============================================================================


def _decode_utf8(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise SourceReadError(f"source is not valid UTF-8: {e}") from e


def _unmarshal(document: Any, dest: Message) -> None:
    """Populate dest from a JSON-compatible object using canonical protobuf JSON.

    Raises:
        SchemaMismatchError: On unknown fields, wrong types or a non-object document.
    """
    if not isinstance(document, dict):
        raise SchemaMismatchError(
            f"failed to unmarshal JSON: expected an object, got {type(document).__name__}"
        )

    dest.Clear()
    try:
        json_format.ParseDict(document, dest)
    except (json_format.ParseError, TypeError, ValueError) as e:
        raise SchemaMismatchError(f"failed to unmarshal JSON: {e}") from e
