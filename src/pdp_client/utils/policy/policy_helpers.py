"""Policy and schema loaders.

Reads policy and schema source documents from streams or files and turns
them into protocol messages, ready to be sent with the admin client.

Policies are decoded from JSON or YAML (see decoder.py). Schemas are JSON
Schema documents that the server interprets, so their raw bytes are carried
as-is in Schema.definition.
"""

from __future__ import annotations

__all__ = [
    "read_policy",
    "read_policy_from_file",
    "read_schema",
    "read_schema_from_file",
]

from pathlib import Path
from typing import IO

from pdp_client.exceptions import SourceReadError
from pdp_client.protocol import policy_pb2, schema_pb2
from pdp_client.utils.file_helpers import require_file_exists
from pdp_client.utils.policy.decoder import read_bounded, read_json_or_yaml


def read_policy(src: IO[bytes] | IO[str]) -> policy_pb2.Policy:
    """Read a policy from a stream.

    Args:
        src: Stream holding one JSON object or one YAML document.

    Returns:
        The decoded Policy message.

    Raises:
        DecodeError: If the document cannot be decoded (see read_json_or_yaml).
    """
    return read_json_or_yaml(src, policy_pb2.Policy())


def read_policy_from_file(path: str | Path) -> policy_pb2.Policy:
    """Read a policy from a JSON or YAML file.

    Raises:
        SourceReadError: If the file is missing or cannot be opened.
        DecodeError: If the document cannot be decoded.
    """
    with _open_source(path, "policy") as f:
        return read_policy(f)


def read_schema(src: IO[bytes] | IO[str], schema_id: str) -> schema_pb2.Schema:
    """Read a schema definition from a stream.

    Args:
        src: Stream holding the JSON Schema document.
        schema_id: ID the schema is stored under (e.g., "leave_request.json").

    Returns:
        Schema message with the raw definition bytes.

    Raises:
        SourceReadError: If reading fails.
        InputTooLargeError: If the definition exceeds MAX_DOCUMENT_BYTES.
    """
    return schema_pb2.Schema(id=schema_id, definition=read_bounded(src))


def read_schema_from_file(path: str | Path) -> schema_pb2.Schema:
    """Read a schema file; the path as given becomes the schema ID.

    Raises:
        SourceReadError: If the file is missing or cannot be read.
        InputTooLargeError: If the definition exceeds MAX_DOCUMENT_BYTES.
    """
    with _open_source(path, "schema") as f:
        return read_schema(f, str(path))


def _open_source(path: str | Path, file_type: str) -> IO[bytes]:
    file_path = Path(path)
    try:
        require_file_exists(file_path, file_type)
        return file_path.open("rb")
    except OSError as e:
        raise SourceReadError(f"failed to open {file_path}: {e}") from e
