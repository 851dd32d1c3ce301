"""Per-request options for scoped client views.

RequestOptions is attached to every request built through a view created
with Client.with_options(). Options are functions over an immutable value,
applied in order.
"""

from __future__ import annotations

__all__ = [
    "AuxData",
    "RequestOpt",
    "RequestOptions",
    "aux_data_jwt",
    "build_request_options",
    "include_meta",
    "with_headers",
    "with_request_id",
]

import uuid
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from pdp_client.protocol import request_pb2
from pdp_client.utils.logging.logging_context import get_request_id


class AuxData(BaseModel):
    """Auxiliary data sent with a request.

    Attributes:
        jwt_token: JWT whose claims are available to policy conditions.
        jwt_key_set_id: Key set to verify the token with (empty = server default).
    """

    jwt_token: str
    jwt_key_set_id: str = ""

    model_config = ConfigDict(frozen=True)

    def to_proto(self) -> request_pb2.AuxData:
        return request_pb2.AuxData(
            jwt=request_pb2.AuxData.JWT(token=self.jwt_token, key_set_id=self.jwt_key_set_id),
        )


class RequestOptions(BaseModel):
    """Options applied to every request of a scoped client view.

    Attributes:
        request_id: Explicit request ID (empty = context-bound or generated).
        aux_data: Auxiliary data to attach.
        include_meta: Ask the server to include evaluation metadata.
        headers: Extra metadata pairs sent with each call (lowercase keys).
    """

    request_id: str = ""
    aux_data: AuxData | None = None
    include_meta: bool = False
    headers: tuple[tuple[str, str], ...] = ()

    model_config = ConfigDict(frozen=True)  # Immutable after creation

    @field_validator("headers", mode="after")
    @classmethod
    def normalize_headers(cls, v: tuple[tuple[str, str], ...]) -> tuple[tuple[str, str], ...]:
        """gRPC metadata keys are lowercase."""
        normalized = []
        for key, value in v:
            if not key:
                raise ValueError("header names must be non-empty")
            normalized.append((key.lower(), value))
        return tuple(normalized)

    def resolve_request_id(self) -> str:
        """Explicit ID, else the ID bound in the calling context, else a new UUID4."""
        return self.request_id or get_request_id() or str(uuid.uuid4())

    def apply(self, request: Any) -> None:
        """Copy request ID, auxiliary data and the meta flag onto a check/plan request."""
        request.request_id = self.resolve_request_id()
        if self.aux_data is not None:
            request.aux_data.CopyFrom(self.aux_data.to_proto())
        request.include_meta = self.include_meta


RequestOpt = Callable[[RequestOptions], RequestOptions]
"""Request option: takes options and returns an updated copy."""


def build_request_options(*opts: RequestOpt) -> RequestOptions:
    """Apply request options, in order, over empty defaults."""
    options = RequestOptions()
    for opt in opts:
        options = opt(options)
    return options


def with_request_id(request_id: str) -> RequestOpt:
    """Send a fixed request ID instead of a generated one."""

    def apply(options: RequestOptions) -> RequestOptions:
        return options.model_copy(update={"request_id": request_id})

    return apply


def aux_data_jwt(token: str, key_set_id: str = "") -> RequestOpt:
    """Attach a JWT as auxiliary data."""

    def apply(options: RequestOptions) -> RequestOptions:
        return options.model_copy(update={"aux_data": AuxData(jwt_token=token, jwt_key_set_id=key_set_id)})

    return apply


def include_meta(include: bool = True) -> RequestOpt:
    """Ask the server to return evaluation metadata."""

    def apply(options: RequestOptions) -> RequestOptions:
        return options.model_copy(update={"include_meta": include})

    return apply


def with_headers(headers: Mapping[str, str] | None = None, /, **kwargs: str) -> RequestOpt:
    """Send extra metadata with every call.

    Keyword names have underscores turned into dashes, so
    ``with_headers(x_tenant="acme")`` sends ``x-tenant: acme``. Pass a mapping
    for names that are not valid identifiers.
    """
    pairs = list((headers or {}).items())
    pairs.extend((key.replace("_", "-"), value) for key, value in kwargs.items())

    def apply(options: RequestOptions) -> RequestOptions:
        return RequestOptions.model_validate({**dict(options), "headers": options.headers + tuple(pairs)})

    return apply
