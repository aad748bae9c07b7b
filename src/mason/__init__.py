"""Mason - guarded phase-based construction runtime.

Drives an agent through a multi-phase build in a voxel world while a
guardian watches for stalls and hazards and a verifier diffs the result
against the blueprint.
"""

from mason.exceptions import (
    ConfigurationError,
    MasonError,
    PhaseFailure,
    PlacementFault,
    RepeatedFailureEscalation,
    SessionNotFoundError,
    ValidationFailure,
    VerificationShortfall,
    WorldFault,
)

__version__ = "0.1.0"

__all__ = [
    # Base exception
    "MasonError",
    # Configuration
    "ConfigurationError",
    # World
    "WorldFault",
    "PlacementFault",
    # Build
    "ValidationFailure",
    "PhaseFailure",
    "RepeatedFailureEscalation",
    "SessionNotFoundError",
    "VerificationShortfall",
]
