"""Credential resolution for the admin API."""

from pdp_client.auth.basic import (
    BasicAuthData,
    extract_machine_name,
    load_basic_auth_data,
    netrc_path,
)

__all__ = [
    "BasicAuthData",
    "extract_machine_name",
    "load_basic_auth_data",
    "netrc_path",
]
