"""Logging utilities and helpers.

This package provides logging infrastructure for pdp-client:
- logging_context: Request ID context propagation

Import directly from submodules to avoid circular imports:
    from pdp_client.utils.logging.logging_context import request_context
"""

__all__: list[str] = []  # Direct submodule imports required (see docstring)
