"""Custom exceptions for pdp-client.

This module contains all custom exceptions used throughout the package.
Every exception derives from PDPClientError so callers can catch SDK
failures in one place. Exceptions are organized by the stage that raises them:

Before the transport:
    - InvalidRequestError: Principal/resource/batch failed validation

Client construction:
    - ConfigurationError: Bad TLS material, unusable target, channel failure

Credential resolution:
    - CredentialError: Base for basic-auth resolution failures
    - MachineNameError: Host cannot be extracted from the server target
    - NetrcUnavailableError: Netrc file missing, unreadable or malformed
    - NetrcEntryNotFoundError: Netrc file has no entry for the host

Document decoding:
    - DecodeError: Base for policy/schema decoding failures
    - SourceReadError, DocumentConversionError, SchemaMismatchError,
      MultipleDocumentsError, InputTooLargeError

After dispatch:
    - RequestFailedError: Transport or server-reported gRPC failure
    - UnexpectedResponseError: Server answered with an unusable response

Usage:
    from pdp_client.exceptions import InvalidRequestError, RequestFailedError
"""

from __future__ import annotations

__all__ = [
    "ConfigurationError",
    "CredentialError",
    "DecodeError",
    "DocumentConversionError",
    "FieldViolation",
    "InputTooLargeError",
    "InvalidRequestError",
    "MachineNameError",
    "MultipleDocumentsError",
    "NetrcEntryNotFoundError",
    "NetrcUnavailableError",
    "PDPClientError",
    "RequestFailedError",
    "SchemaMismatchError",
    "SourceReadError",
    "UnexpectedResponseError",
]

from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    import grpc


class PDPClientError(Exception):
    """Base exception for all pdp-client failures."""


# =============================================================================
# Validation Errors (call never reaches the transport)
# =============================================================================


class FieldViolation(NamedTuple):
    """A single failed validation rule.

    Attributes:
        field: Dotted path of the offending field (e.g., "roles", "attr.owner").
        message: Human-readable description of the rule that failed.
    """

    field: str
    message: str


class InvalidRequestError(PDPClientError, ValueError):
    """Raised when a domain object fails validation before a request is built.

    Attributes:
        subject: What was being validated ("principal", "resource", "resource batch").
        violations: Every rule that failed, in field order.
    """

    def __init__(self, subject: str, violations: list[FieldViolation]) -> None:
        self.subject = subject
        self.violations = list(violations)
        details = "; ".join(f"{v.field}: {v.message}" for v in self.violations)
        super().__init__(f"invalid {subject}: {details}")

    @property
    def fields(self) -> list[str]:
        """Paths of the offending fields."""
        return [v.field for v in self.violations]


# =============================================================================
# Configuration Errors (fatal to client construction)
# =============================================================================


class ConfigurationError(PDPClientError):
    """Connection configuration is invalid or its material cannot be loaded.

    Raised when:
    - CA bundle is missing or contains no PEM certificates
    - Client certificate/key pair is missing, malformed or mismatched
    - Client certificate has expired
    - Server certificate cannot be fetched in insecure mode
    - No target address is available
    - The gRPC channel cannot be created

    Attributes:
        path: File involved in the failure, if any.
    """

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


# =============================================================================
# Credential Resolution Errors
# =============================================================================


class CredentialError(PDPClientError):
    """Base exception for basic-auth credential resolution failures.

    Resolution fails closed: when any of these is raised, no partial
    credential is returned.
    """


class MachineNameError(CredentialError):
    """The server target does not contain an extractable host name.

    Attributes:
        target: The rejected target string.
    """

    def __init__(self, target: str, reason: str) -> None:
        super().__init__(f"cannot extract machine name from {target!r}: {reason}")
        self.target = target
        self.reason = reason


class NetrcUnavailableError(CredentialError):
    """The netrc file is missing, unreadable or malformed.

    Attributes:
        path: Netrc path that was consulted.
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"failed to load netrc file {path}: {reason}")
        self.path = path


class NetrcEntryNotFoundError(CredentialError):
    """The netrc file has no entry for the requested machine.

    Attributes:
        machine: Host name that was looked up.
        path: Netrc path that was consulted.
    """

    def __init__(self, machine: str, path: str) -> None:
        super().__init__(f"no netrc entry for machine {machine!r} in {path}")
        self.machine = machine
        self.path = path


# =============================================================================
# Decode Errors (fatal to one decode call)
# =============================================================================


class DecodeError(PDPClientError):
    """Base exception for policy/schema document decoding failures."""


class SourceReadError(DecodeError):
    """Reading from the source stream failed."""


class DocumentConversionError(DecodeError):
    """YAML input could not be converted into JSON."""


class SchemaMismatchError(DecodeError):
    """JSON does not match the destination message (unknown or mistyped fields)."""


class MultipleDocumentsError(DecodeError):
    """YAML input contains more than one document."""

    def __init__(self, message: str = "more than one YAML document detected") -> None:
        super().__init__(message)


class InputTooLargeError(DecodeError):
    """Input exceeds the document size cap.

    Attributes:
        limit: The cap in bytes.
    """

    def __init__(self, limit: int) -> None:
        super().__init__(f"input exceeds the maximum document size of {limit} bytes")
        self.limit = limit


# =============================================================================
# Dispatch Errors
# =============================================================================


class RequestFailedError(PDPClientError):
    """A gRPC call failed after retries were exhausted.

    Wraps grpc.RpcError so transport failures are distinguishable from
    validation failures. The original error is chained as __cause__.

    Attributes:
        operation: SDK operation that failed (e.g., "check_resources").
        code: gRPC status code, if the failure carried one.
        details: Status details reported by the server or transport.
    """

    def __init__(
        self,
        operation: str,
        *,
        code: "grpc.StatusCode | None" = None,
        details: str | None = None,
    ) -> None:
        self.operation = operation
        self.code = code
        self.details = details
        status = code.name if code is not None else "UNKNOWN"
        message = f"{operation} request failed: {status}"
        if details:
            message = f"{message}: {details}"
        super().__init__(message)

    @classmethod
    def from_rpc_error(cls, operation: str, error: "grpc.RpcError") -> RequestFailedError:
        """Build from a grpc.RpcError, which is also a grpc.Call when it carries a status."""
        code = error.code() if callable(getattr(error, "code", None)) else None
        details = error.details() if callable(getattr(error, "details", None)) else str(error)
        return cls(operation, code=code, details=details)


class UnexpectedResponseError(PDPClientError):
    """The server answered, but the response cannot be interpreted.

    Raised instead of coercing an anomaly into a default answer, e.g. a
    check call that returns no results.

    Attributes:
        operation: SDK operation that received the response.
    """

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(f"unexpected response from server for {operation}: {reason}")
        self.operation = operation
