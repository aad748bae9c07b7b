"""Event handlers for Mason builds.

- ConsoleEventHandler: Pretty console narration for `mason build`
"""

from rich.console import Console

from mason.builder.events import (
    BaseBuildEvent,
    BlockVerificationFailedEvent,
    BuildCompletedEvent,
    BuildEventType,
    BuildFailedEvent,
    BuildProgressEvent,
    BuildStartedEvent,
    BuildStoppedEvent,
    CheckpointSavedEvent,
    FunctionalityValidatedEvent,
    GateCompletedEvent,
    GuardianFailureEvent,
    GuardianWarningEvent,
    PhaseCompletedEvent,
    PhaseFailedEvent,
    PhaseStartedEvent,
    RecoveryAttemptedEvent,
    StructureValidatedEvent,
)


class ConsoleEventHandler:
    """Pretty console output for build events.

    Checkpoint events are only shown when verbose is set.
    """

    def __init__(self, console: Console | None = None, verbose: bool = False) -> None:
        self.console = console or Console()
        self.verbose = verbose

    def __call__(self, event: BaseBuildEvent) -> None:
        """Handle an event by printing to console."""
        match event.event_type:
            case BuildEventType.BUILD_STARTED:
                self._handle_build_started(event)  # type: ignore[arg-type]
            case BuildEventType.BUILD_COMPLETED:
                self._handle_build_completed(event)  # type: ignore[arg-type]
            case BuildEventType.BUILD_FAILED:
                self._handle_build_failed(event)  # type: ignore[arg-type]
            case BuildEventType.BUILD_STOPPED:
                self._handle_build_stopped(event)  # type: ignore[arg-type]
            case BuildEventType.BUILD_PROGRESS:
                self._handle_progress(event)  # type: ignore[arg-type]
            case BuildEventType.PHASE_STARTED:
                self._handle_phase_started(event)  # type: ignore[arg-type]
            case BuildEventType.PHASE_COMPLETED:
                self._handle_phase_completed(event)  # type: ignore[arg-type]
            case BuildEventType.PHASE_FAILED:
                self._handle_phase_failed(event)  # type: ignore[arg-type]
            case BuildEventType.CHECKPOINT_SAVED:
                self._handle_checkpoint(event)  # type: ignore[arg-type]
            case BuildEventType.GATE_COMPLETED:
                self._handle_gate(event)  # type: ignore[arg-type]
            case BuildEventType.GUARDIAN_WARNING:
                self._handle_warning(event)  # type: ignore[arg-type]
            case BuildEventType.GUARDIAN_FAILURE:
                self._handle_failure(event)  # type: ignore[arg-type]
            case BuildEventType.RECOVERY_ATTEMPTED:
                self._handle_recovery(event)  # type: ignore[arg-type]
            case BuildEventType.BLOCK_VERIFICATION_FAILED:
                self._handle_block_failed(event)  # type: ignore[arg-type]
            case BuildEventType.STRUCTURE_VALIDATED:
                self._handle_structure(event)  # type: ignore[arg-type]
            case BuildEventType.FUNCTIONALITY_VALIDATED:
                self._handle_functionality(event)  # type: ignore[arg-type]
            case _:
                pass

    def _handle_build_started(self, event: BuildStartedEvent) -> None:
        verb = "Resuming" if event.resumed else "Starting"
        self.console.print(
            f"[bold blue]▶[/] {verb} [bold]{event.building_type}[/] "
            f"({event.total_blocks} blocks) at [cyan]{event.phase}[/] [dim]{event.session_id}[/]"
        )

    def _handle_build_completed(self, event: BuildCompletedEvent) -> None:
        self.console.print()
        summary = f"[bold green]✓[/] Build complete in {event.duration_seconds:.2f}s"
        if event.accuracy is not None:
            summary += f" ({event.accuracy:.1f}% accurate"
            if event.functional is not None:
                summary += ", functional" if event.functional else ", [yellow]not functional[/]"
            summary += ")"
        self.console.print(summary)

    def _handle_build_failed(self, event: BuildFailedEvent) -> None:
        self.console.print()
        self.console.print(f"[bold red]✗[/] Build failed: {event.reason}")
        if event.error:
            self.console.print(f"  [red]{event.error}[/]")

    def _handle_build_stopped(self, event: BuildStoppedEvent) -> None:
        self.console.print(f"[yellow]■[/] Stopped during [cyan]{event.phase}[/]: {event.reason}")

    def _handle_progress(self, event: BuildProgressEvent) -> None:
        self.console.print(
            f"[blue]📊[/] {event.percentage:.0f}% complete "
            f"({event.placed_blocks}/{event.total_blocks} blocks), now in [cyan]{event.phase}[/]"
        )

    def _handle_phase_started(self, event: PhaseStartedEvent) -> None:
        self.console.print(f"[bold blue]►[/] [bold]{event.phase}[/]")

    def _handle_phase_completed(self, event: PhaseCompletedEvent) -> None:
        self.console.print(f"[bold green]✓[/] [bold]{event.phase}[/] ({event.duration_seconds:.2f}s)")

    def _handle_phase_failed(self, event: PhaseFailedEvent) -> None:
        self.console.print(f"[bold red]✗[/] [bold]{event.phase}[/] {event.reason}, continuing")

    def _handle_checkpoint(self, event: CheckpointSavedEvent) -> None:
        if self.verbose:
            self.console.print(f"[dim]💾 checkpoint {event.sequence}: {event.description}[/]")

    def _handle_gate(self, event: GateCompletedEvent) -> None:
        mark = "[green]✓[/]" if event.passed else "[red]✗[/]"
        self.console.print(f"  {mark} {event.gate}: {event.message}")

    def _handle_warning(self, event: GuardianWarningEvent) -> None:
        self.console.print(f"[yellow]⚠[/] {event.message}")

    def _handle_failure(self, event: GuardianFailureEvent) -> None:
        if self.verbose:
            self.console.print(f"[red]![/] {event.action} failed ({event.count}x): {event.reason}")

    def _handle_recovery(self, event: RecoveryAttemptedEvent) -> None:
        mark = "[green]↻[/]" if event.succeeded else "[red]↻[/]"
        detail = f": {event.detail}" if event.detail else ""
        self.console.print(f"{mark} Recovery [bold]{event.strategy}[/]{detail}")

    def _handle_block_failed(self, event: BlockVerificationFailedEvent) -> None:
        if self.verbose:
            x, y, z = event.position
            self.console.print(f"[red]✗[/] {event.block_type} at ({x},{y},{z}): {event.reason}")

    def _handle_structure(self, event: StructureValidatedEvent) -> None:
        self.console.print(
            f"[cyan]🔍[/] Structure {event.accuracy:.1f}% accurate "
            f"({event.correct_blocks}/{event.total_blocks} correct, "
            f"{event.missing_blocks} missing, {event.wrong_blocks} wrong)"
        )

    def _handle_functionality(self, event: FunctionalityValidatedEvent) -> None:
        status = "[green]PASSED[/]" if event.functional else "[red]FAILED[/]"
        self.console.print(
            f"[cyan]🏠[/] {event.building_type} functionality {status} "
            f"({event.passed_tests}/{event.total_tests} tests passed)"
        )
