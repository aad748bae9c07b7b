"""Mason exception hierarchy.

Provides a unified exception hierarchy for the construction runtime and CLI.
Nothing in the runtime is meant to terminate the process: most of these
errors are caught at a degrade point and turned into a result object.

Usage:
    from mason.exceptions import SessionNotFoundError, MasonError

    try:
        session = BuildSession.load_session(session_id, world=world, verifier=verifier)
    except SessionNotFoundError as e:
        print(f"No checkpoints for {e.session_id}")
    except MasonError as e:
        print(f"Mason error: {e}")
"""

from typing import Any


class MasonError(Exception):
    """Base exception for all Mason errors.

    All Mason-specific exceptions inherit from this class, allowing
    callers to catch all Mason errors with a single except clause.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# Configuration Errors


class ConfigurationError(MasonError):
    """Error in Mason configuration.

    Raised when config.yaml is invalid or contains values the
    schema rejects.
    """

    pass


# World Errors


class WorldFault(MasonError):
    """A WorldPort call failed.

    Raised by world drivers when a query or actuation cannot be
    carried out (no reference block, item missing, path blocked, ...).
    """

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"World {operation} failed: {reason}")


class PlacementFault(MasonError):
    """A single block action failed.

    Recorded in the session's failed blocks and retried by the
    structure sweep. Never aborts a phase.
    """

    def __init__(self, block_type: str, position: tuple[int, int, int], reason: str) -> None:
        self.block_type = block_type
        self.position = position
        self.reason = reason
        x, y, z = position
        super().__init__(f"Failed to place {block_type} at ({x},{y},{z}): {reason}")


# Build Errors


class ValidationFailure(MasonError):
    """Pre-build validation did not pass.

    Non-fatal: callers may force the build anyway.
    """

    def __init__(self, failures: list[Any]) -> None:
        self.failures = failures
        names = ", ".join(getattr(f, "gate", str(f)) for f in failures)
        super().__init__(f"Pre-build validation failed: {names}")


class PhaseFailure(MasonError):
    """A phase handler returned failure or raised.

    Triggers an emergency checkpoint, a backoff and a forced advance.
    """

    def __init__(self, phase: str, reason: str = "Phase execution failed") -> None:
        self.phase = phase
        self.reason = reason
        super().__init__(f"Phase {phase} failed: {reason}")


class RepeatedFailureEscalation(MasonError):
    """The same failure kind reached the repeated-failure threshold.

    Recorded by the guardian, which resets the counter and switches
    strategy. Not raised to callers.
    """

    def __init__(self, failure_type: str, count: int) -> None:
        self.failure_type = failure_type
        self.count = count
        super().__init__(f"Repeated failure: {failure_type} ({count} times)")


class SessionNotFoundError(MasonError):
    """No checkpoint exists for a session id.

    Fatal to the resume call only.
    """

    def __init__(self, session_id: str, sessions_dir: str | None = None) -> None:
        self.session_id = session_id
        self.sessions_dir = sessions_dir
        message = f"Session not found: {session_id}"
        if sessions_dir:
            message += f" (in {sessions_dir})"
        super().__init__(message)


class VerificationShortfall(MasonError):
    """Final structure or functionality checks failed."""

    def __init__(self, session_id: str, accuracy: float | None, failed_tests: list[str]) -> None:
        self.session_id = session_id
        self.accuracy = accuracy
        self.failed_tests = failed_tests
        parts = []
        if accuracy is not None:
            parts.append(f"accuracy {accuracy:.1f}%")
        if failed_tests:
            parts.append(f"failed tests: {', '.join(failed_tests)}")
        detail = "; ".join(parts) if parts else "verification did not pass"
        super().__init__(f"Build {session_id} did not verify: {detail}")
