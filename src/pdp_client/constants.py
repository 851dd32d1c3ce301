"""Application-wide constants for pdp-client.

Constants that define client behavior.
For per-connection settings, see config.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    "USER_AGENT",
    # Connection defaults
    "DEFAULT_CONNECT_TIMEOUT_SECONDS",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RETRY_TIMEOUT_SECONDS",
    "RETRY_BACKOFF_SECONDS",
    "RETRY_BACKOFF_JITTER",
    # mTLS certificate monitoring
    "CERT_EXPIRY_WARNING_DAYS",
    "CERT_EXPIRY_CRITICAL_DAYS",
    # Metadata keys
    "PLAYGROUND_INSTANCE_HEADER",
    "AUTHORIZATION_HEADER",
    # Credential resolution
    "SERVER_ENV_VAR",
    "USERNAME_ENV_VAR",
    "PASSWORD_ENV_VAR",
    "NETRC_ENV_VAR",
    "NETRC_FILE",
    # Requests
    "PLAN_RESOURCE_PLACEHOLDER_ID",
    # Document decoding
    "MAX_DOCUMENT_BYTES",
    "SNIFF_BUFFER_BYTES",
]

import sys

import grpc

from pdp_client._version import __version__

# ============================================================================
# Application Identity
# ============================================================================

APP_NAME: str = "pdp-client"

# Sent on every connection as the primary user agent
USER_AGENT: str = f"{APP_NAME}/{__version__} grpc-python/{grpc.__version__}"

# ============================================================================
# Connection Defaults
# ============================================================================

# Minimum time allowed for establishing a connection
DEFAULT_CONNECT_TIMEOUT_SECONDS: float = 30.0

# Total attempts per call (first attempt included)
DEFAULT_MAX_RETRIES: int = 3

# Deadline applied to each individual attempt
DEFAULT_RETRY_TIMEOUT_SECONDS: float = 2.0

# Linear backoff between attempts: 50ms +/- 10%
RETRY_BACKOFF_SECONDS: float = 0.05
RETRY_BACKOFF_JITTER: float = 0.10

# ============================================================================
# mTLS Certificate Monitoring
# ============================================================================

# Client certificate expiry warning thresholds (days)
CERT_EXPIRY_WARNING_DAYS: int = 14
CERT_EXPIRY_CRITICAL_DAYS: int = 7

# ============================================================================
# Metadata Keys
# ============================================================================

# Routes calls to a playground instance (demo only, no availability guarantees)
PLAYGROUND_INSTANCE_HEADER: str = "playground-instance"

AUTHORIZATION_HEADER: str = "authorization"

# ============================================================================
# Credential Resolution
# ============================================================================

SERVER_ENV_VAR: str = "CERBOS_SERVER"
USERNAME_ENV_VAR: str = "CERBOS_USERNAME"
PASSWORD_ENV_VAR: str = "CERBOS_PASSWORD"

# Overrides the netrc location
NETRC_ENV_VAR: str = "NETRC"

# Default netrc file name in the user's home directory
NETRC_FILE: str = "_netrc" if sys.platform == "win32" else ".netrc"

# ============================================================================
# Requests
# ============================================================================

# Plan queries describe a set of resources, not an instance. The resource
# validator requires an ID, so a copy of the resource carries this one.
# It is never sent to the server.
PLAN_RESOURCE_PLACEHOLDER_ID: str = "dummyID"

# ============================================================================
# Document Decoding
# ============================================================================

# Upper bound on policy/schema source documents
MAX_DOCUMENT_BYTES: int = 4 * 1024 * 1024  # 4 MiB

# Prefix inspected when deciding between JSON and YAML
SNIFF_BUFFER_BYTES: int = 4 * 1024  # 4 KiB
