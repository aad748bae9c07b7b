"""Mason Builder - the construction runtime.

Core Components:
- Manager: Runs gate → phases → verification and converts failures to results
- Session: Phase state machine with durable checkpoints
- Guardian: Concurrent progress/health monitors with automatic recovery
- Verifier: Per-block, structural and functional checks with corrections
- Gates: Pre-build validation (materials, terrain, environment, tools)
- Journal: Append-only event log per session

Import components from their modules (mason.builder.manager, ...);
mason.bus depends on mason.builder.events, so this package stays light.
"""

from mason.builder.blueprint import Blueprint, create_hut_blueprint, create_wall_blueprint

__all__ = ["Blueprint", "create_hut_blueprint", "create_wall_blueprint"]
