"""Tests for TLS material loading and secure channels."""

import datetime
import logging

import grpc
import pytest

from pdp_client.client.grpc_client import Client
from pdp_client.config import (
    resolve_config,
    with_tls_authority,
    with_tls_ca_cert,
    with_tls_client_cert,
    with_tls_insecure,
)
from pdp_client.exceptions import ConfigurationError
from pdp_client.transport.tls import (
    create_channel_security,
    load_ca_bundle,
    load_client_key_pair,
)

# ============================================================================
# CA bundle
# ============================================================================


class TestLoadCaBundle:
    """CA bundle validation."""

    def test_returns_pem_bytes(self, ca_cert):
        assert load_ca_bundle(str(ca_cert.cert_path)) == ca_cert.cert_pem

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="CA certificate file not found") as exc_info:
            load_ca_bundle(str(tmp_path / "missing.pem"))

        assert isinstance(exc_info.value.__cause__, FileNotFoundError)

    def test_file_without_certificates(self, tmp_path):
        # Arrange
        path = tmp_path / "garbage.pem"
        path.write_text("not a certificate")

        # Act / Assert
        with pytest.raises(ConfigurationError, match="failed to append CA certificates"):
            load_ca_bundle(str(path))


# ============================================================================
# Client key pair
# ============================================================================


class TestLoadClientKeyPair:
    """Client certificate and key validation."""

    def test_returns_cert_and_key(self, client_cert):
        cert_pem, key_pem = load_client_key_pair(str(client_cert.cert_path), str(client_cert.key_path))

        assert cert_pem == client_cert.cert_pem
        assert key_pem == client_cert.key_pem

    def test_mismatched_key(self, client_cert, server_cert):
        with pytest.raises(ConfigurationError, match="failed to load client certificate and key"):
            load_client_key_pair(str(client_cert.cert_path), str(server_cert.key_path))

    def test_missing_key(self, client_cert, tmp_path):
        with pytest.raises(ConfigurationError, match="Client key file not found"):
            load_client_key_pair(str(client_cert.cert_path), str(tmp_path / "missing.key"))

    def test_expired_certificate(self, cert_factory, ca_cert):
        # Arrange
        now = datetime.datetime.now(datetime.timezone.utc)
        expired = cert_factory(
            "expired",
            issuer=ca_cert,
            not_valid_before=now - datetime.timedelta(days=30),
            not_valid_after=now - datetime.timedelta(days=2),
        )

        # Act / Assert
        with pytest.raises(ConfigurationError, match="has expired"):
            load_client_key_pair(str(expired.cert_path), str(expired.key_path))

    def test_expiring_certificate_logs_critical(self, cert_factory, ca_cert, caplog):
        # Arrange
        now = datetime.datetime.now(datetime.timezone.utc)
        expiring = cert_factory("expiring", issuer=ca_cert, not_valid_after=now + datetime.timedelta(days=3))

        # Act
        with caplog.at_level(logging.WARNING):
            load_client_key_pair(str(expiring.cert_path), str(expiring.key_path))

        # Assert
        assert any(record.levelno == logging.CRITICAL for record in caplog.records)

    def test_soon_expiring_certificate_logs_warning(self, cert_factory, ca_cert, caplog):
        now = datetime.datetime.now(datetime.timezone.utc)
        soon = cert_factory("soon", issuer=ca_cert, not_valid_after=now + datetime.timedelta(days=10, hours=1))

        with caplog.at_level(logging.WARNING):
            load_client_key_pair(str(soon.cert_path), str(soon.key_path))

        levels = {record.levelno for record in caplog.records}
        assert logging.WARNING in levels
        assert logging.CRITICAL not in levels

    def test_valid_certificate_logs_nothing(self, client_cert, caplog):
        with caplog.at_level(logging.WARNING):
            load_client_key_pair(str(client_cert.cert_path), str(client_cert.key_path))

        assert [r for r in caplog.records if r.name.startswith("pdp_client")] == []


# ============================================================================
# Channel security
# ============================================================================


class TestCreateChannelSecurity:
    """Credential selection."""

    def test_system_roots_without_ca(self):
        security = create_channel_security(resolve_config("localhost:3593"))

        assert isinstance(security.credentials, grpc.ChannelCredentials)
        assert security.target_name_override is None

    def test_bad_ca_is_fatal(self, tmp_path):
        conf = resolve_config("localhost:3593", with_tls_ca_cert(str(tmp_path / "missing.pem")))

        with pytest.raises(ConfigurationError):
            create_channel_security(conf)

    def test_insecure_unreachable_server(self):
        # Port 1 on loopback refuses connections
        conf = resolve_config("127.0.0.1:1", with_tls_insecure())

        with pytest.raises(ConfigurationError, match="failed to fetch server certificate"):
            create_channel_security(conf)

    def test_insecure_rejects_unix_target(self):
        conf = resolve_config("unix:/tmp/cerbos.sock", with_tls_insecure())

        with pytest.raises(ConfigurationError, match="invalid server address"):
            create_channel_security(conf)


class TestSecureCalls:
    """End-to-end calls over TLS."""

    def test_ca_verified_connection(self, start_tls_server, ca_cert, server_cert):
        # Arrange
        server = start_tls_server(grpc.ssl_server_credentials([(server_cert.key_pem, server_cert.cert_pem)]))

        # Act
        with Client(
            server.address,
            with_tls_ca_cert(str(ca_cert.cert_path)),
            with_tls_authority("localhost"),
        ) as client:
            info = client.server_info(timeout=10)

        # Assert
        assert info.version == "0.40.0"

    def test_mutual_tls(self, start_tls_server, ca_cert, server_cert, client_cert):
        # Arrange
        credentials = grpc.ssl_server_credentials(
            [(server_cert.key_pem, server_cert.cert_pem)],
            root_certificates=ca_cert.cert_pem,
            require_client_auth=True,
        )
        server = start_tls_server(credentials)

        # Act
        with Client(
            server.address,
            with_tls_ca_cert(str(ca_cert.cert_path)),
            with_tls_authority("localhost"),
            with_tls_client_cert(str(client_cert.cert_path), str(client_cert.key_path)),
        ) as client:
            info = client.server_info(timeout=10)

        # Assert
        assert info.commit == "abc123"

    def test_insecure_accepts_self_signed_server(self, start_tls_server, self_signed_cert):
        # Arrange
        server = start_tls_server(
            grpc.ssl_server_credentials([(self_signed_cert.key_pem, self_signed_cert.cert_pem)])
        )

        # Act
        with Client(server.address, with_tls_insecure()) as client:
            info = client.server_info(timeout=10)

        # Assert
        assert info.version == "0.40.0"
