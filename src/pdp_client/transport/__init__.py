"""Transport layer: channel construction, TLS, interceptors.

Modules:
    channel.py      - build_channel/create_channel from a ConnectionConfig
    tls.py          - CA bundle, client key pair and insecure-mode credentials
    retry.py        - Retry interceptor for transient failures
    metadata.py     - Playground and basic-auth metadata (call credentials/interceptor)
    stats.py        - StatsHandler protocol and reporting interceptor
    call_details.py - ClientCallDetails replacement helper

Import directly from submodules to avoid circular imports (config.py depends
on stats.py, channel.py depends on config.py):
    from pdp_client.transport.channel import build_channel
"""

__all__: list[str] = []  # Direct submodule imports required (see docstring)
