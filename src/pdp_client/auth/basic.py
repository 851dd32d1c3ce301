"""Basic-auth credential resolution.

Resolves the admin API server, username and password from three sources.
Per field, the first non-empty value wins:

    1. Explicit argument
    2. Environment variable (CERBOS_SERVER, CERBOS_USERNAME, CERBOS_PASSWORD)
    3. Netrc entry for the server's host (username and password only)

The netrc file is located via $NETRC, falling back to ~/.netrc.
Resolution fails closed: any error aborts without returning partial data.
"""

from __future__ import annotations

__all__ = [
    "BasicAuthData",
    "extract_machine_name",
    "load_basic_auth_data",
    "netrc_path",
]

import logging
import netrc
import os
from collections.abc import Mapping
from pathlib import Path
from typing import NamedTuple

from pdp_client.constants import (
    NETRC_ENV_VAR,
    NETRC_FILE,
    PASSWORD_ENV_VAR,
    SERVER_ENV_VAR,
    USERNAME_ENV_VAR,
)
from pdp_client.exceptions import (
    MachineNameError,
    NetrcEntryNotFoundError,
    NetrcUnavailableError,
)
from pdp_client.utils.target import parse_target

logger = logging.getLogger(__name__)


class BasicAuthData(NamedTuple):
    """Resolved admin API credentials."""

    server: str
    username: str
    password: str


def load_basic_auth_data(
    env: Mapping[str, str] | None = None,
    server: str = "",
    username: str = "",
    password: str = "",
) -> BasicAuthData:
    """Resolve server, username and password.

    Args:
        env: Environment to read variables from (default: os.environ).
        server: Explicit server target.
        username: Explicit username.
        password: Explicit password.

    Returns:
        BasicAuthData with every source merged. Fields with no source stay empty
        only when username and password were both found before the netrc step.

    Raises:
        MachineNameError: If the netrc step is needed and the server has no host.
        NetrcUnavailableError: If the netrc file cannot be loaded.
        NetrcEntryNotFoundError: If the netrc file has no entry for the host.
    """
    if env is None:
        env = os.environ

    server = server or env.get(SERVER_ENV_VAR, "")
    username = username or env.get(USERNAME_ENV_VAR, "")
    password = password or env.get(PASSWORD_ENV_VAR, "")

    if username and password:
        return BasicAuthData(server, username, password)

    machine = extract_machine_name(server)
    netrc_user, netrc_password = _load_credentials_from_netrc(env, machine)

    return BasicAuthData(server, username or netrc_user, password or netrc_password)


def extract_machine_name(target: str) -> str:
    """Extract the host to use as netrc lookup key from a dial target.

    Examples:
        "myserver", "myserver:3593", "dns:///myserver:3593",
        "dns://192.168.1.1/myserver:3593" -> "myserver"
        "[::1]:80" -> "::1"
        "" -> ""

    Raises:
        MachineNameError: For non-DNS schemes (e.g., unix sockets) and
            authority-only targets such as "dns://myserver:3593".
    """
    try:
        return parse_target(target).host
    except ValueError as e:
        raise MachineNameError(target, str(e)) from e


def netrc_path(env: Mapping[str, str]) -> Path:
    """Netrc location: $NETRC if set, otherwise the per-user default."""
    if override := env.get(NETRC_ENV_VAR):
        return Path(override).expanduser()
    return Path.home() / NETRC_FILE


def _load_credentials_from_netrc(env: Mapping[str, str], machine: str) -> tuple[str, str]:
    """Look up login and password for a machine in the netrc file.

    Raises:
        NetrcUnavailableError: If the file is missing, unreadable or malformed.
        NetrcEntryNotFoundError: If there is no entry for the machine.
    """
    path = netrc_path(env)

    try:
        entries = netrc.netrc(str(path))
    except (OSError, netrc.NetrcParseError) as e:
        raise NetrcUnavailableError(str(path), str(e)) from e

    authenticators = entries.authenticators(machine)
    if authenticators is None:
        raise NetrcEntryNotFoundError(machine, str(path))

    login, _account, password = authenticators
    logger.debug("Loaded credentials for machine %r from %s", machine, path)
    return login or "", password or ""
