"""TLS material loading for secure channels.

Provides CA bundle loading, client key pair validation, certificate expiry
checking, and channel credential creation for verified, mutually
authenticated and insecure (unverified) connections.

Insecure mode: gRPC's TLS stack has no switch for skipping verification, so
the certificate the server presents is fetched once and pinned as the only
trusted root, with the target name overridden to a name on that certificate.
This covers self-signed and single-certificate servers.
"""

from __future__ import annotations

__all__ = [
    "ChannelSecurity",
    "create_channel_security",
    "load_ca_bundle",
    "load_client_key_pair",
]

import logging
import ssl
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, NamedTuple

import grpc
from cryptography import x509
from cryptography.x509.oid import NameOID

from pdp_client.constants import (
    CERT_EXPIRY_CRITICAL_DAYS,
    CERT_EXPIRY_WARNING_DAYS,
)
from pdp_client.exceptions import ConfigurationError
from pdp_client.utils.file_helpers import read_file_bytes, resolve_path
from pdp_client.utils.target import parse_target

if TYPE_CHECKING:
    from pdp_client.config import ConnectionConfig

logger = logging.getLogger(__name__)

# Port assumed when the target names none (gRPC over TLS)
_DEFAULT_TLS_PORT = 443


class ChannelSecurity(NamedTuple):
    """Credentials for a secure channel.

    Attributes:
        credentials: Channel credentials to pass to grpc.secure_channel.
        target_name_override: Name to verify the server certificate against,
            when it differs from the dial target.
    """

    credentials: grpc.ChannelCredentials
    target_name_override: str | None = None


# =============================================================================
# Channel Credentials
# =============================================================================


def create_channel_security(conf: "ConnectionConfig") -> ChannelSecurity:
    """Build channel credentials from the TLS settings of a configuration.

    Args:
        conf: Connection configuration (plaintext must be False).

    Returns:
        Channel credentials and an optional target name override.

    Raises:
        ConfigurationError: If any TLS material cannot be loaded, or the
            server certificate cannot be fetched in insecure mode.
    """
    root_certificates: bytes | None = None
    name_override: str | None = None

    if conf.tls_insecure:
        root_certificates, presented_name = _fetch_server_certificate(conf.address, conf.connect_timeout)
        name_override = conf.tls_authority or presented_name
        if conf.tls_ca_cert:
            logger.debug(
                {
                    "event": "tls_ca_ignored",
                    "message": "CA certificate ignored because server verification is disabled",
                    "details": {"ca_cert": conf.tls_ca_cert},
                }
            )
    elif conf.tls_ca_cert:
        root_certificates = load_ca_bundle(conf.tls_ca_cert)

    private_key: bytes | None = None
    certificate_chain: bytes | None = None
    if conf.tls_client_cert and conf.tls_client_key:
        certificate_chain, private_key = load_client_key_pair(conf.tls_client_cert, conf.tls_client_key)

    credentials = grpc.ssl_channel_credentials(
        root_certificates=root_certificates,
        private_key=private_key,
        certificate_chain=certificate_chain,
    )
    return ChannelSecurity(credentials, name_override)


# =============================================================================
# Certificate Loading
# =============================================================================


def load_ca_bundle(ca_path: str) -> bytes:
    """Load and validate a PEM CA bundle.

    Args:
        ca_path: Path to the CA bundle.

    Returns:
        PEM bytes containing at least one certificate.

    Raises:
        ConfigurationError: If the file is missing, unreadable, or holds no certificates.
    """
    path = resolve_path(ca_path)
    try:
        data = read_file_bytes(path, "CA certificate")
    except OSError as e:
        raise ConfigurationError(f"failed to load CA certificate: {e}", path=str(path)) from e

    try:
        x509.load_pem_x509_certificates(data)
    except ValueError as e:
        raise ConfigurationError(
            f"failed to append CA certificates to the pool: {path} contains no valid PEM certificates",
            path=str(path),
        ) from e
    return data


def load_client_key_pair(cert_path: str, key_path: str) -> tuple[bytes, bytes]:
    """Load and validate a client certificate and its private key.

    Creates an SSL context to verify the certificate and key can be loaded
    together, then checks certificate expiry and logs warnings if it expires soon.

    Args:
        cert_path: Path to client certificate (PEM).
        key_path: Path to client private key (PEM).

    Returns:
        (certificate chain, private key) as PEM bytes.

    Raises:
        ConfigurationError: If files are missing, invalid, mismatched, or the
            certificate has expired.
    """
    cert = resolve_path(cert_path)
    key = resolve_path(key_path)
    try:
        cert_pem = read_file_bytes(cert, "client certificate")
        key_pem = read_file_bytes(key, "client key")
    except OSError as e:
        raise ConfigurationError(f"failed to load client certificate and key: {e}") from e

    try:
        ctx = ssl.create_default_context()
        ctx.load_cert_chain(str(cert), str(key), password=_no_password)
    except ssl.SSLError as e:
        raise ConfigurationError(
            f"failed to load client certificate and key from [{cert}, {key}]: {e}",
            path=str(cert),
        ) from e

    _check_certificate_expiry(cert, cert_pem)
    return cert_pem, key_pem


def _no_password() -> bytes:
    # Encrypted keys are unsupported; never prompt on the terminal
    return b""


def _check_certificate_expiry(cert_path: Path, cert_pem: bytes) -> int | None:
    """Check if certificate is expired or expiring soon.

    Logs a warning if certificate expires within CERT_EXPIRY_WARNING_DAYS.
    Logs a critical warning if expires within CERT_EXPIRY_CRITICAL_DAYS.
    Raises an error if certificate is already expired.

    Args:
        cert_path: Path to certificate file (for messages).
        cert_pem: Certificate contents.

    Returns:
        Days until expiry, or None if could not determine.

    Raises:
        ConfigurationError: If certificate is already expired.
    """
    try:
        cert = x509.load_pem_x509_certificate(cert_pem)
    except ValueError as e:
        # SSL validation already passed, so this only loses the expiry warning
        logger.warning(
            {
                "event": "certificate_expiry_check_failed",
                "message": f"Could not check certificate expiry for {cert_path}: {e}",
                "component": "tls",
                "error_type": type(e).__name__,
                "error_message": str(e),
                "details": {"cert_path": str(cert_path)},
            }
        )
        return None

    now = datetime.now(timezone.utc)
    expires_at = cert.not_valid_after_utc
    days_until_expiry = (expires_at - now).days

    if days_until_expiry < 0:
        raise ConfigurationError(
            f"client certificate has expired (expired {-days_until_expiry} days ago). Certificate: {cert_path}",
            path=str(cert_path),
        )

    if days_until_expiry <= CERT_EXPIRY_CRITICAL_DAYS:
        logger.critical(
            "CRITICAL: client certificate expires in %d days (on %s). Renew immediately! Certificate: %s",
            days_until_expiry,
            expires_at.strftime("%Y-%m-%d"),
            cert_path,
        )
    elif days_until_expiry <= CERT_EXPIRY_WARNING_DAYS:
        logger.warning(
            "client certificate expires in %d days (on %s). Consider renewing soon. Certificate: %s",
            days_until_expiry,
            expires_at.strftime("%Y-%m-%d"),
            cert_path,
        )

    return days_until_expiry


# =============================================================================
# Insecure Mode
# =============================================================================


def _fetch_server_certificate(address: str, timeout: float) -> tuple[bytes, str | None]:
    """Fetch the certificate the server presents, without verifying it.

    Args:
        address: Dial target.
        timeout: Connection timeout in seconds (0 = no timeout).

    Returns:
        (PEM certificate, a host name the certificate is valid for).

    Raises:
        ConfigurationError: If the target cannot be parsed or the server is unreachable.
    """
    try:
        endpoint = parse_target(address)
    except ValueError as e:
        raise ConfigurationError(f"invalid server address {address!r}: {e}") from e
    if not endpoint.host:
        raise ConfigurationError(f"invalid server address {address!r}: no host")

    port = endpoint.port or _DEFAULT_TLS_PORT
    try:
        pem = ssl.get_server_certificate((endpoint.host, port), timeout=timeout or None)
    except OSError as e:
        raise ConfigurationError(f"failed to fetch server certificate from {endpoint.host}:{port}: {e}") from e

    logger.warning(
        {
            "event": "tls_verification_disabled",
            "message": f"Server certificate of {endpoint.host}:{port} is trusted without verification",
            "details": {"host": endpoint.host, "port": port},
        }
    )
    return pem.encode("ascii"), _certificate_host_name(pem.encode("ascii"))


def _certificate_host_name(pem: bytes) -> str | None:
    """First DNS subject alternative name, falling back to the common name."""
    try:
        cert = x509.load_pem_x509_certificate(pem)
    except ValueError:
        return None

    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        names = san.value.get_values_for_type(x509.DNSName)
        if names:
            return names[0]
    except x509.ExtensionNotFound:
        pass

    common_names = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    if common_names:
        value = common_names[0].value
        return value if isinstance(value, str) else value.decode()
    return None
