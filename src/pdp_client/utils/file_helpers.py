"""Shared file utilities for pdp-client.

Provides common utilities used by the TLS layer and the policy loaders:
- resolve_path: Expand ~ and make a path absolute
- require_file_exists: Fail with a descriptive FileNotFoundError
- read_file_bytes: Read a file, naming what it was for on failure
"""

from __future__ import annotations

__all__ = [
    "read_file_bytes",
    "require_file_exists",
    "resolve_path",
]

from pathlib import Path


def resolve_path(path: str | Path) -> Path:
    """Expand the user directory and resolve to an absolute path.

    Args:
        path: Path as given by the caller.

    Returns:
        Absolute path.
    """
    return Path(path).expanduser().resolve()


def require_file_exists(file_path: Path, file_type: str = "file") -> None:
    """Raise FileNotFoundError with helpful message if file doesn't exist.

    Args:
        file_path: Path to check.
        file_type: Description for error message (e.g., "CA certificate", "policy").

    Raises:
        FileNotFoundError: If file doesn't exist.
    """
    if file_path.is_file():
        return

    raise FileNotFoundError(f"{file_type[:1].upper()}{file_type[1:]} file not found at {file_path}")


def read_file_bytes(file_path: Path, file_type: str = "file") -> bytes:
    """Read the whole file after checking that it exists.

    Args:
        file_path: Path to read.
        file_type: Description for error messages.

    Returns:
        File contents.

    Raises:
        FileNotFoundError: If file doesn't exist.
        OSError: If file cannot be read.
    """
    require_file_exists(file_path, file_type)
    try:
        return file_path.read_bytes()
    except OSError as e:
        raise OSError(f"Could not read {file_type} file {file_path}: {e}") from e
