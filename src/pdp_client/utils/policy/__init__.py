"""Policy and schema document loading.

Modules:
    decoder.py        - JSON/YAML sniffing and decoding into protocol messages
    policy_helpers.py - read_policy/read_schema stream and file helpers
"""

from pdp_client.utils.policy.decoder import (
    DocumentFormat,
    read_bounded,
    read_json_or_yaml,
    sniff_format,
)
from pdp_client.utils.policy.policy_helpers import (
    read_policy,
    read_policy_from_file,
    read_schema,
    read_schema_from_file,
)

__all__ = [
    "DocumentFormat",
    "read_bounded",
    "read_json_or_yaml",
    "read_policy",
    "read_policy_from_file",
    "read_schema",
    "read_schema_from_file",
    "sniff_format",
]
