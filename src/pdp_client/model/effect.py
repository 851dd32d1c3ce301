"""Effect enum for decision outcomes.

These values define the possible outcomes of a check for a single action,
as reported by the decision service.
"""

from __future__ import annotations

__all__ = ["Effect"]

from enum import Enum

from pdp_client.protocol import effect_pb2


class Effect(str, Enum):
    """Decision outcome for one action on one resource.

    Inherits from str for easy serialization and comparison.

    Attributes:
        ALLOW: Action is permitted.
        DENY: Action is denied by a matching rule.
        NO_MATCH: No rule matched the action (treated as deny).
        UNSPECIFIED: The service reported no effect.
    """

    ALLOW = "allow"
    DENY = "deny"
    NO_MATCH = "no_match"
    UNSPECIFIED = "unspecified"

    @classmethod
    def from_proto(cls, value: int) -> Effect:
        """Map a wire effect to the enum; unknown values map to UNSPECIFIED."""
        return _FROM_PROTO.get(value, cls.UNSPECIFIED)


_FROM_PROTO: dict[int, Effect] = {
    effect_pb2.EFFECT_ALLOW: Effect.ALLOW,
    effect_pb2.EFFECT_DENY: Effect.DENY,
    effect_pb2.EFFECT_NO_MATCH: Effect.NO_MATCH,
    effect_pb2.EFFECT_UNSPECIFIED: Effect.UNSPECIFIED,
}
