"""Tests for the admin façade."""

import base64

import grpc
import pytest

from pdp_client import AdminClient, with_plaintext
from pdp_client.exceptions import ConfigurationError, InvalidRequestError, NetrcUnavailableError, RequestFailedError
from pdp_client.protocol import policy_pb2, schema_pb2


def album_policy(version: str = "default") -> policy_pb2.Policy:
    return policy_pb2.Policy(
        api_version="api.cerbos.dev/v1",
        resource_policy=policy_pb2.ResourcePolicy(resource="album", version=version),
    )


@pytest.fixture
def admin(fake_server):
    with AdminClient(
        fake_server.address,
        with_plaintext(),
        username="cerbos",
        password="s3cret",
        environment={},
    ) as client:
        yield client


# ============================================================================
# Construction
# ============================================================================


class TestConstruction:
    """Address and credential resolution."""

    def test_basic_auth_header_is_sent(self, admin, fake_server):
        # Act
        admin.list_policies(timeout=10)

        # Assert
        header = fake_server.recorder.last.metadata["authorization"]
        assert header.startswith("Basic ")
        assert base64.b64decode(header.removeprefix("Basic ")) == b"cerbos:s3cret"

    def test_address_and_credentials_from_environment(self, fake_server):
        env = {
            "CERBOS_SERVER": fake_server.address,
            "CERBOS_USERNAME": "env-user",
            "CERBOS_PASSWORD": "env-pass",
        }

        with AdminClient("", with_plaintext(), environment=env) as client:
            client.list_schemas(timeout=10)

        header = fake_server.recorder.last.metadata["authorization"]
        assert base64.b64decode(header.removeprefix("Basic ")) == b"env-user:env-pass"

    def test_credentials_from_netrc(self, fake_server, tmp_path):
        # Arrange
        netrc_file = tmp_path / "netrc"
        netrc_file.write_text("machine 127.0.0.1 login net-user password net-pass\n")

        # Act
        with AdminClient(fake_server.address, with_plaintext(), environment={"NETRC": str(netrc_file)}) as client:
            client.list_policies(timeout=10)

        # Assert
        header = fake_server.recorder.last.metadata["authorization"]
        assert base64.b64decode(header.removeprefix("Basic ")) == b"net-user:net-pass"

    def test_missing_netrc_fails_closed(self, fake_server, tmp_path):
        with pytest.raises(NetrcUnavailableError):
            AdminClient(fake_server.address, with_plaintext(), environment={"NETRC": str(tmp_path / "missing")})

    def test_no_server_address(self):
        with pytest.raises(ConfigurationError, match="no server address"):
            AdminClient(username="u", password="p", environment={})

    def test_config_is_exposed(self, admin):
        assert admin.config.plaintext is True


# ============================================================================
# Policies
# ============================================================================


class TestPolicies:
    """Policy store operations."""

    def test_add_and_list(self, admin, fake_server):
        # Act
        admin.add_or_update_policy(album_policy(), album_policy("v2"))
        ids = admin.list_policies(timeout=10)

        # Assert
        assert ids == ["resource.album.vdefault", "resource.album.vv2"]

    def test_list_filters_are_sent(self, admin, fake_server):
        admin.list_policies(include_disabled=True, name_regexp="album.*", version_regexp="default")

        request = fake_server.recorder.last.request
        assert request.include_disabled is True
        assert request.name_regexp == "album.*"
        assert request.version_regexp == "default"
        assert request.scope_regexp == ""

    def test_get(self, admin):
        admin.add_or_update_policy(album_policy())

        policies = admin.get_policy("resource.album.vdefault")

        assert [p.resource_policy.resource for p in policies] == ["album"]

    def test_disable_and_enable(self, admin):
        # Arrange
        admin.add_or_update_policy(album_policy())

        # Act / Assert
        assert admin.disable_policy("resource.album.vdefault", "resource.missing.vdefault") == 1
        assert admin.enable_policy("resource.album.vdefault") == 1

    @pytest.mark.parametrize("method", ["get_policy", "disable_policy", "enable_policy", "add_or_update_policy"])
    def test_arguments_are_required(self, admin, fake_server, method):
        with pytest.raises(InvalidRequestError, match="admin request"):
            getattr(admin, method)()

        assert fake_server.recorder.calls == []

    def test_empty_id_is_rejected(self, admin):
        with pytest.raises(InvalidRequestError) as exc_info:
            admin.get_policy("resource.album.vdefault", "")

        assert exc_info.value.fields == ["ids[1]"]


# ============================================================================
# Schemas and store
# ============================================================================


class TestSchemas:
    """Schema store operations."""

    def test_lifecycle(self, admin):
        # Arrange
        schema = schema_pb2.Schema(id="principal.json", definition=b'{"type": "object"}')

        # Act
        admin.add_or_update_schema(schema)
        listed = admin.list_schemas()
        fetched = admin.get_schema("principal.json")
        deleted = admin.delete_schema("principal.json", "other.json")

        # Assert
        assert listed == ["principal.json"]
        assert fetched[0].definition == b'{"type": "object"}'
        assert deleted == 1
        assert admin.list_schemas() == []

    def test_delete_requires_ids(self, admin):
        with pytest.raises(InvalidRequestError):
            admin.delete_schema()


def test_reload_store(admin, fake_server):
    admin.reload_store(wait=True, timeout=10)

    assert fake_server.recorder.last.method == "ReloadStore"
    assert fake_server.recorder.last.request.wait is True


def test_server_failure_is_wrapped(admin, fake_server):
    fake_server.recorder.failures.append(grpc.StatusCode.UNAUTHENTICATED)

    with pytest.raises(RequestFailedError) as exc_info:
        admin.list_policies(timeout=10)

    assert exc_info.value.code == grpc.StatusCode.UNAUTHENTICATED
    assert exc_info.value.operation == "list_policies"
