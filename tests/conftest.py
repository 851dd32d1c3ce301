"""Shared fixtures: in-process decision service and throwaway certificates."""

from __future__ import annotations

import datetime
import functools
import ipaddress
from collections.abc import Iterator
from concurrent import futures
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import grpc
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from pdp_client.protocol import effect_pb2, engine_pb2, response_pb2, svc_pb2_grpc
from pdp_client.utils.logging.logging_context import clear_context

# ============================================================================
# Fake services
# ============================================================================


@dataclass
class RecordedCall:
    """A request as the server saw it."""

    method: str
    request: Any
    metadata: dict[str, str]


@dataclass
class CallRecorder:
    """Records calls and injects failures, shared by the fake services."""

    calls: list[RecordedCall] = field(default_factory=list)
    failures: list[grpc.StatusCode] = field(default_factory=list)

    def record(self, method: str, request: Any, context: grpc.ServicerContext) -> None:
        metadata = {item.key: item.value for item in context.invocation_metadata()}
        self.calls.append(RecordedCall(method, request, metadata))
        if self.failures:
            context.abort(self.failures.pop(0), "injected failure")

    @property
    def last(self) -> RecordedCall:
        return self.calls[-1]


class FakeCerbosService(svc_pb2_grpc.CerbosServiceServicer):
    """Allows every action unless a canned response is set."""

    def __init__(self, recorder: CallRecorder) -> None:
        self.recorder = recorder
        self.check_response: response_pb2.CheckResourcesResponse | None = None
        self.plan_response: response_pb2.PlanResourcesResponse | None = None
        self.denied_actions: set[str] = set()

    def CheckResources(self, request, context):
        self.recorder.record("CheckResources", request, context)
        if self.check_response is not None:
            return self.check_response

        results = []
        for entry in request.resources:
            results.append(
                response_pb2.CheckResourcesResponse.ResultEntry(
                    resource=response_pb2.CheckResourcesResponse.ResultEntry.Resource(
                        id=entry.resource.id,
                        kind=entry.resource.kind,
                        policy_version=entry.resource.policy_version or "default",
                        scope=entry.resource.scope,
                    ),
                    actions={
                        action: effect_pb2.EFFECT_DENY if action in self.denied_actions else effect_pb2.EFFECT_ALLOW
                        for action in entry.actions
                    },
                )
            )
        return response_pb2.CheckResourcesResponse(request_id=request.request_id, results=results)

    def PlanResources(self, request, context):
        self.recorder.record("PlanResources", request, context)
        if self.plan_response is not None:
            return self.plan_response
        return response_pb2.PlanResourcesResponse(
            request_id=request.request_id,
            resource_kind=request.resource.kind,
            policy_version=request.resource.policy_version or "default",
            filter=engine_pb2.PlanResourcesFilter(kind=engine_pb2.PlanResourcesFilter.KIND_ALWAYS_ALLOWED),
        )

    def ServerInfo(self, request, context):
        self.recorder.record("ServerInfo", request, context)
        return response_pb2.ServerInfoResponse(version="0.40.0", commit="abc123", build_date="2024-11-05T10:00:00Z")


class FakeAdminService(svc_pb2_grpc.CerbosAdminServiceServicer):
    """In-memory policy and schema store."""

    def __init__(self, recorder: CallRecorder) -> None:
        self.recorder = recorder
        self.policies: dict[str, Any] = {}
        self.schemas: dict[str, Any] = {}
        self.disabled: set[str] = set()

    def AddOrUpdatePolicy(self, request, context):
        self.recorder.record("AddOrUpdatePolicy", request, context)
        for policy in request.policies:
            self.policies[f"resource.{policy.resource_policy.resource}.v{policy.resource_policy.version}"] = policy
        return response_pb2.AddOrUpdatePolicyResponse()

    def ListPolicies(self, request, context):
        self.recorder.record("ListPolicies", request, context)
        return response_pb2.ListPoliciesResponse(policy_ids=sorted(self.policies))

    def GetPolicy(self, request, context):
        self.recorder.record("GetPolicy", request, context)
        return response_pb2.GetPolicyResponse(policies=[self.policies[i] for i in request.id if i in self.policies])

    def DisablePolicy(self, request, context):
        self.recorder.record("DisablePolicy", request, context)
        found = [i for i in request.id if i in self.policies]
        self.disabled.update(found)
        return response_pb2.DisablePolicyResponse(disabled_policies=len(found))

    def EnablePolicy(self, request, context):
        self.recorder.record("EnablePolicy", request, context)
        found = [i for i in request.id if i in self.disabled]
        self.disabled.difference_update(found)
        return response_pb2.EnablePolicyResponse(enabled_policies=len(found))

    def AddOrUpdateSchema(self, request, context):
        self.recorder.record("AddOrUpdateSchema", request, context)
        for schema in request.schemas:
            self.schemas[schema.id] = schema
        return response_pb2.AddOrUpdateSchemaResponse()

    def ListSchemas(self, request, context):
        self.recorder.record("ListSchemas", request, context)
        return response_pb2.ListSchemasResponse(schema_ids=sorted(self.schemas))

    def GetSchema(self, request, context):
        self.recorder.record("GetSchema", request, context)
        return response_pb2.GetSchemaResponse(schemas=[self.schemas[i] for i in request.id if i in self.schemas])

    def DeleteSchema(self, request, context):
        self.recorder.record("DeleteSchema", request, context)
        deleted = [i for i in request.id if self.schemas.pop(i, None) is not None]
        return response_pb2.DeleteSchemaResponse(deleted_schemas=len(deleted))

    def ReloadStore(self, request, context):
        self.recorder.record("ReloadStore", request, context)
        return response_pb2.ReloadStoreResponse()


@dataclass
class FakeServer:
    """A running in-process server."""

    address: str
    recorder: CallRecorder
    service: FakeCerbosService
    admin: FakeAdminService


def _start_server(credentials: grpc.ServerCredentials | None = None) -> tuple[grpc.Server, FakeServer]:
    recorder = CallRecorder()
    service = FakeCerbosService(recorder)
    admin = FakeAdminService(recorder)

    server = grpc.server(futures.ThreadPoolExecutor(max_workers=4))
    svc_pb2_grpc.add_CerbosServiceServicer_to_server(service, server)
    svc_pb2_grpc.add_CerbosAdminServiceServicer_to_server(admin, server)
    if credentials is None:
        port = server.add_insecure_port("127.0.0.1:0")
    else:
        port = server.add_secure_port("127.0.0.1:0", credentials)
    server.start()
    return server, FakeServer(f"127.0.0.1:{port}", recorder, service, admin)


@pytest.fixture
def fake_server() -> Iterator[FakeServer]:
    """Plaintext in-process server hosting both services."""
    server, fake = _start_server()
    yield fake
    server.stop(grace=None)


@pytest.fixture
def start_tls_server() -> Iterator[Any]:
    """Factory starting TLS servers; all are stopped after the test."""
    servers: list[grpc.Server] = []

    def start(credentials: grpc.ServerCredentials) -> FakeServer:
        server, fake = _start_server(credentials)
        servers.append(server)
        return fake

    yield start
    for server in servers:
        server.stop(grace=None)


@pytest.fixture(autouse=True)
def _reset_request_context() -> Iterator[None]:
    """Keep request IDs from leaking between tests."""
    clear_context()
    yield
    clear_context()


# ============================================================================
# Certificates
# ============================================================================


@dataclass
class CertificateFiles:
    """PEM material for one certificate, in memory and on disk."""

    cert_pem: bytes
    key_pem: bytes
    cert_path: Path
    key_path: Path
    certificate: x509.Certificate
    private_key: ec.EllipticCurvePrivateKey


def make_certificate(
    directory: Path,
    name: str,
    *,
    common_name: str = "localhost",
    issuer: CertificateFiles | None = None,
    is_ca: bool = False,
    not_valid_before: datetime.datetime | None = None,
    not_valid_after: datetime.datetime | None = None,
) -> CertificateFiles:
    """Create a certificate (self-signed unless issuer is given) and write it to directory."""
    now = datetime.datetime.now(datetime.timezone.utc)
    key = ec.generate_private_key(ec.SECP256R1())
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer.certificate.subject if issuer else subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_valid_before or now - datetime.timedelta(days=1))
        .not_valid_after(not_valid_after or now + datetime.timedelta(days=365))
        .add_extension(x509.BasicConstraints(ca=is_ca or issuer is None, path_length=None), critical=True)
    )
    if not is_ca:
        builder = builder.add_extension(
            x509.SubjectAlternativeName(
                [x509.DNSName(common_name), x509.IPAddress(ipaddress.ip_address("127.0.0.1"))]
            ),
            critical=False,
        )

    signing_key = issuer.private_key if issuer else key
    certificate = builder.sign(signing_key, hashes.SHA256())

    cert_pem = certificate.public_bytes(serialization.Encoding.PEM)
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    cert_path = directory / f"{name}.crt"
    key_path = directory / f"{name}.key"
    cert_path.write_bytes(cert_pem)
    key_path.write_bytes(key_pem)
    return CertificateFiles(cert_pem, key_pem, cert_path, key_path, certificate, key)


@pytest.fixture
def cert_factory(tmp_path: Path) -> Any:
    """make_certificate bound to the test's temporary directory."""
    return functools.partial(make_certificate, tmp_path)


@pytest.fixture
def ca_cert(tmp_path: Path) -> CertificateFiles:
    """Certificate authority."""
    return make_certificate(tmp_path, "ca", common_name="Test CA", is_ca=True)


@pytest.fixture
def server_cert(tmp_path: Path, ca_cert: CertificateFiles) -> CertificateFiles:
    """Server certificate for localhost, signed by the CA."""
    return make_certificate(tmp_path, "server", common_name="localhost", issuer=ca_cert)


@pytest.fixture
def client_cert(tmp_path: Path, ca_cert: CertificateFiles) -> CertificateFiles:
    """Client certificate signed by the CA."""
    return make_certificate(tmp_path, "client", common_name="test-client", issuer=ca_cert)


@pytest.fixture
def self_signed_cert(tmp_path: Path) -> CertificateFiles:
    """Self-signed server certificate for localhost."""
    return make_certificate(tmp_path, "self-signed", common_name="localhost")
