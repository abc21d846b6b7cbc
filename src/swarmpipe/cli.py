"""Command-line entry point.

Usage:
    # Run the pipeline on an issue description
    swarmpipe run "Add a dark mode toggle to the settings page"

    # Skip the spec phase by supplying a plan
    swarmpipe run --plan plan.md

    # Resume the latest interrupted run
    swarmpipe run --resume

    # Re-implement the latest run with reviewer feedback
    swarmpipe review "The toggle does not persist across reloads"

    # Write a reviewed repository analysis to .swarm/analysis/repo-analysis.md
    swarmpipe analyze

    # Clarify requirements interactively and write a plan for run --plan
    swarmpipe plan "Add a dark mode toggle"

    # Dry run without any model calls
    swarmpipe --debug run --backend mock "Add a login page"
"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import logging
import signal
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from swarmpipe.application.analysis import RepoAnalysisEngine
from swarmpipe.application.planning import PlanningEngine
from swarmpipe.application.progress_tracker import ProgressTracker
from swarmpipe.application.supervisor import AutoResumeRunner, EngineFactory
from swarmpipe.domain.config import PipelineConfig, RunSettings, VerifyConfig
from swarmpipe.domain.events import PipelineEvent, PipelineEventType
from swarmpipe.domain.exceptions import (
    PartialStreamFailure,
    RunModeMismatch,
    ShutdownRequested,
    SwarmError,
    WorkflowIntegrityError,
)
from swarmpipe.domain.interfaces import (
    AgentBackendInterface,
    ClarificationProviderInterface,
    EventSinkInterface,
)
from swarmpipe.domain.models import PhaseStatus, RunMode, StreamStatus
from swarmpipe.factory import analysis_engine_factory, engine_factory, planning_engine_factory
from swarmpipe.infrastructure.config_loader import load_pipeline_config
from swarmpipe.infrastructure.persistence import (
    FanOutEventSink,
    FilesystemCheckpointStore,
    JsonlEventSink,
    QueueEventSink,
)
from swarmpipe.infrastructure.registry import AgentBackendRegistry
from swarmpipe.infrastructure.settings import read_plan, settings_from_env

logger = logging.getLogger("swarmpipe")

console = Console()
error_console = Console(stderr=True)

EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

SUPPRESSED_LOGGERS = ("httpx", "httpcore", "openai", "urllib3", "asyncio")

_STREAM_STYLES = {
    StreamStatus.DONE: "green",
    StreamStatus.FAILED: "bold red",
    StreamStatus.SKIPPED: "dim",
}


def _configure_logging(debug: bool, log_file: str | None = None) -> None:
    """Set up logging, suppressing noisy third-party loggers.

    When *log_file* is set, detailed logs go to the file **and** a
    concise stream is kept on stderr so the user sees progress.
    """
    level = logging.DEBUG if debug else logging.INFO
    root = logging.getLogger()
    root.setLevel(level)

    fmt_detailed = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    fmt_concise = logging.Formatter("%(levelname)s - %(message)s")

    if log_file:
        # File gets everything.
        fh = logging.FileHandler(log_file, mode="a")
        fh.setLevel(level)
        fh.setFormatter(fmt_detailed)
        root.addHandler(fh)
        # Terminal gets INFO+ with a shorter format.
        sh = logging.StreamHandler()
        sh.setLevel(logging.INFO)
        sh.setFormatter(fmt_concise)
        root.addHandler(sh)
    else:
        sh = logging.StreamHandler()
        sh.setLevel(level)
        sh.setFormatter(fmt_concise if not debug else fmt_detailed)
        root.addHandler(sh)

    for name in SUPPRESSED_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _print_error(message: str, hint: str | None = None) -> None:
    """Print formatted error message to stderr."""
    content = Text(f"ERROR: {message}", style="bold red")
    if hint:
        content.append(f"\n\nHint: {hint}", style="yellow")
    error_console.print(Panel(content, title="Error", border_style="red"))


# =========================================================================
# Progress rendering
# =========================================================================


def _render_event(tracker: ProgressTracker, event: PipelineEvent) -> None:
    """Feed the tracker and print phase and stream transitions.

    Log events are not printed: the emitter already mirrors them to the
    ``swarmpipe.pipeline`` logger.
    """
    tracker.apply(event)
    kind = event.event_type
    if kind is PipelineEventType.PHASE_ACTIVATED:
        name = next((p.name for p in tracker.phases if p.key == event.phase_key), event.phase_key)
        done, total = tracker.completed_phase_count, tracker.total_phase_count
        console.print(f"[bold blue]>> {name}[/] [dim]({event.phase_key}, {done}/{total} done)[/]")
    elif kind is PipelineEventType.PHASE_SKIPPED:
        console.print(f"[dim]-- skipped {event.phase_key}: {event.message}[/]")
    elif kind is PipelineEventType.STREAM_STATUS and event.stream_index is not None:
        status = StreamStatus(event.status)
        style = _STREAM_STYLES.get(status, "cyan")
        console.print(f"   [{style}]S{event.stream_index + 1} {status.value}[/]")


_FLUSH_ON = frozenset(
    {
        PipelineEventType.PHASE_ACTIVATED,
        PipelineEventType.PHASE_COMPLETED,
        PipelineEventType.PHASE_SKIPPED,
    }
)


async def _consume_events(
    queue: asyncio.Queue[PipelineEvent],
    tracker: ProgressTracker,
    event_log: JsonlEventSink,
) -> None:
    """Render events and write the event log off the event loop at phase boundaries."""
    while True:
        event = await queue.get()
        _render_event(tracker, event)
        if event.event_type in _FLUSH_ON:
            await asyncio.to_thread(event_log.flush)


def _drain(queue: asyncio.Queue[PipelineEvent], tracker: ProgressTracker) -> None:
    while not queue.empty():
        _render_event(tracker, queue.get_nowait())


def _print_progress(tracker: ProgressTracker) -> None:
    table = Table(title=f"Run {tracker.run_id}", show_header=True)
    table.add_column("Phase", style="cyan")
    table.add_column("Status")
    for phase in tracker.phases:
        table.add_row(f"{phase.name} ({phase.key})", phase.status.value)
    console.print(table)
    if tracker.streams:
        streams = Table(show_header=True)
        streams.add_column("Stream", style="cyan")
        streams.add_column("Task")
        streams.add_column("Status")
        for stream in tracker.streams:
            streams.add_row(stream.label, stream.task[:60], stream.status.value)
        console.print(streams)
    console.print(f"[dim]Elapsed: {tracker.elapsed_s:.0f}s[/]")


# =========================================================================
# Execution
# =========================================================================


def _create_backend(
    name: str, base_url: str | None, settings: RunSettings
) -> AgentBackendInterface:
    options: dict[str, object] = {"timeout": settings.session_timeout_s}
    if base_url:
        options["base_url"] = base_url
    try:
        return AgentBackendRegistry.create(name, **options)
    except KeyError as e:
        raise click.BadParameter(str(e.args[0]), param_hint="--backend") from e


def _install_signal_handlers(runner: AutoResumeRunner) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, runner.request_shutdown)
        except NotImplementedError:
            # Windows event loops: fall back to KeyboardInterrupt
            logger.debug("Signal handlers unsupported; Ctrl+C aborts immediately")
            return


async def _execute(
    runner: AutoResumeRunner,
    queue_sink: QueueEventSink,
    event_log: JsonlEventSink,
    tracker: ProgressTracker,
) -> Any:
    _install_signal_handlers(runner)
    consumer = asyncio.create_task(_consume_events(queue_sink.queue, tracker, event_log))
    try:
        return await runner.execute()
    finally:
        consumer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await consumer
        _drain(queue_sink.queue, tracker)
        await asyncio.to_thread(event_log.flush)


def _failure_hint(
    settings: RunSettings,
    tracker: ProgressTracker,
    runner: AutoResumeRunner,
    command: str = "run",
) -> str:
    phase = tracker.active_phase
    failed_phase = f"{phase.name} ({phase.key})" if phase else "(before the first phase)"
    resumes = max(0, runner.attempts - 1)
    return (
        f"Failed phase: {failed_phase}. "
        f"Auto-resume attempts used: {resumes}/{settings.max_auto_resume}. "
        f"Checkpoint kept for run {settings.run_id}; resume with: "
        f"swarmpipe {command} --resume --run-id {settings.run_id}"
    )


def _print_header(settings: RunSettings, config: PipelineConfig, title: str) -> None:
    header = Text(f"{title} {settings.run_id}", style="bold blue")
    header.append(
        f"\n{settings.repo_root}  primary={config.primary_model}  review={config.review_model}",
        style="dim",
    )
    console.print(Panel(header, expand=False))


def _supervise(
    settings: RunSettings,
    make_factory: Callable[[EventSinkInterface], EngineFactory],
    tracker: ProgressTracker,
    command: str,
) -> Any:
    """Run under auto-resume, exiting with a report on any failure."""
    queue_sink = QueueEventSink()
    event_log = JsonlEventSink(settings.run_dir)
    runner = AutoResumeRunner(make_factory(FanOutEventSink(queue_sink, event_log)), settings)
    try:
        return asyncio.run(_execute(runner, queue_sink, event_log, tracker))
    except ShutdownRequested:
        error_console.print(
            f"[yellow]Stopped. Resume with: "
            f"swarmpipe {command} --resume --run-id {settings.run_id}[/]"
        )
        sys.exit(EXIT_INTERRUPTED)
    except PartialStreamFailure as e:
        failed = ", ".join(f"S{i + 1}" for i in e.failed_indices)
        _print_error(
            f"{e} (failed streams: {failed})",
            hint=_failure_hint(settings, tracker, runner, command),
        )
        sys.exit(EXIT_FAILURE)
    except (WorkflowIntegrityError, RunModeMismatch) as e:
        _print_error(str(e), hint="Start a new run without --resume.")
        sys.exit(EXIT_FAILURE)
    except SwarmError as e:
        _print_error(str(e), hint=_failure_hint(settings, tracker, runner, command))
        sys.exit(EXIT_FAILURE)
    except Exception as e:
        logger.debug("Run %s failed", settings.run_id, exc_info=True)
        _print_error(
            f"{type(e).__name__}: {e}", hint=_failure_hint(settings, tracker, runner, command)
        )
        sys.exit(EXIT_FAILURE)


def _run_and_report(
    settings: RunSettings,
    config: PipelineConfig,
    backend: AgentBackendInterface,
    review_feedback: str | None = None,
) -> None:
    _print_header(settings, config, "Run")
    tracker = ProgressTracker(settings.run_id)
    tracker.init_phases(config.phases)
    _supervise(
        settings,
        lambda sink: engine_factory(config, backend, sink, review_feedback),
        tracker,
        "run",
    )

    _print_progress(tracker)
    summary_path = settings.repo_root / settings.doc_dir / settings.summary_file_name
    console.print(
        Panel(f"Summary written to {summary_path}", title="Success", border_style="green")
    )


def _run_mode(
    settings: RunSettings,
    config: PipelineConfig,
    phase_keys: tuple[str, ...],
    make_factory: Callable[[EventSinkInterface], EngineFactory],
    command: str,
) -> str:
    _print_header(settings, config, command.capitalize())
    tracker = ProgressTracker(settings.run_id)
    tracker.init_phase_keys(phase_keys)
    location = _supervise(settings, make_factory, tracker, command)
    _print_progress(tracker)
    return location


def _resolve_resume(settings: RunSettings, run_id: str | None) -> RunSettings:
    """Point a ``--resume`` without ``--run-id`` at the latest run."""
    if not settings.resume or run_id is not None:
        return settings
    latest = FilesystemCheckpointStore(settings.swarm_root).latest_run_id()
    if latest is None:
        _print_error("No previous run to resume", hint="Start a new run without --resume")
        sys.exit(EXIT_USAGE)
    return dataclasses.replace(settings, run_id=latest)


class ConsoleClarifier(ClarificationProviderInterface):
    """Asks the planner's questions on the terminal.

    An answer may span several lines and ends at an empty line; a literal
    ``\\n`` inside a line also starts a new line. An empty answer skips the
    round.
    """

    def ask(self, questions: str) -> str:
        console.print(Panel(questions, title="Clarifying questions", border_style="cyan"))
        console.print("[dim]Answer below. Finish with an empty line; leave empty to skip.[/]")
        lines: list[str] = []
        while True:
            try:
                line = click.prompt(">", default="", show_default=False, prompt_suffix=" ")
            except click.Abort:
                # stdin closed
                break
            if not line.strip():
                break
            lines.append(line.replace("\\n", "\n"))
        return "\n".join(lines)


def _load_config(repo_root: Path) -> PipelineConfig:
    try:
        return load_pipeline_config(repo_root)
    except SwarmError as e:
        _print_error(str(e), hint="Check swarm.config.yaml")
        sys.exit(EXIT_USAGE)


def _settings(repo_root: Path, issue_body: str, **kwargs: object) -> RunSettings:
    try:
        return settings_from_env(repo_root, issue_body, **kwargs)  # type: ignore[arg-type]
    except ValueError as e:
        _print_error(str(e))
        sys.exit(EXIT_USAGE)


# =========================================================================
# Commands
# =========================================================================


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--log-file",
    default=None,
    type=click.Path(),
    help="Write detailed logs to file",
)
def cli(debug: bool, log_file: str | None) -> None:
    """Resumable multi-agent pipeline runner."""
    _configure_logging(debug, log_file=log_file)


@cli.command()
@click.argument("prompt", required=False, default="")
@click.option(
    "--repo",
    default=".",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Repository root (default: current directory)",
)
@click.option(
    "--plan",
    "plan_file",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Plan file with a '## Refined Requirements' section; skips the spec phase",
)
@click.option("--resume", is_flag=True, help="Resume an interrupted run")
@click.option("--run-id", default=None, help="Run to resume (default: latest)")
@click.option("--backend", default="openai", show_default=True, help="Agent backend")
@click.option("--base-url", default=None, help="OpenAI-compatible endpoint URL")
@click.option("--verify-build", default=None, help="Shell command to verify the build")
@click.option("--verify-test", default=None, help="Shell command to run tests")
@click.option("--verify-lint", default=None, help="Shell command to run linting")
@click.option("-v", "--verbose", is_flag=True, help="Verbose agent output")
def run(
    prompt: str,
    repo: Path,
    plan_file: Path | None,
    resume: bool,
    run_id: str | None,
    backend: str,
    base_url: str | None,
    verify_build: str | None,
    verify_test: str | None,
    verify_lint: str | None,
    verbose: bool,
) -> None:
    """Run the pipeline on PROMPT (an issue description)."""
    repo = repo.resolve()
    issue_body = prompt
    if plan_file is not None:
        try:
            issue_body = read_plan(plan_file.read_text(encoding="utf-8"))
        except ValueError as e:
            _print_error(str(e), hint="Plans need a '## Refined Requirements' section")
            sys.exit(EXIT_USAGE)
    if not issue_body and not resume:
        raise click.UsageError("Provide a PROMPT, --plan or --resume")

    verify_overrides = None
    if verify_build or verify_test or verify_lint:
        verify_overrides = VerifyConfig(build=verify_build, test=verify_test, lint=verify_lint)

    settings = _settings(
        repo,
        issue_body,
        run_id=run_id,
        resume=resume,
        plan_provided=plan_file is not None,
        verbose=verbose,
        verify_overrides=verify_overrides,
    )
    settings = _resolve_resume(settings, run_id)

    config = _load_config(repo)
    _run_and_report(settings, config, _create_backend(backend, base_url, settings))


@cli.command()
@click.option(
    "--repo",
    default=".",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Repository root (default: current directory)",
)
@click.option("--resume", is_flag=True, help="Resume an interrupted analysis")
@click.option("--run-id", default=None, help="Run to resume (default: latest)")
@click.option("--backend", default="openai", show_default=True, help="Agent backend")
@click.option("--base-url", default=None, help="OpenAI-compatible endpoint URL")
def analyze(
    repo: Path,
    resume: bool,
    run_id: str | None,
    backend: str,
    base_url: str | None,
) -> None:
    """Write a reviewed repository analysis for later runs to build on."""
    repo = repo.resolve()
    settings = _resolve_resume(_settings(repo, "", run_id=run_id, resume=resume), run_id)
    config = _load_config(repo)
    agent_backend = _create_backend(backend, base_url, settings)
    location = _run_mode(
        settings,
        config,
        RepoAnalysisEngine.phase_keys,
        lambda sink: analysis_engine_factory(config, agent_backend, sink),
        RunMode.ANALYZE.value,
    )
    console.print(Panel(f"Analysis written to {location}", title="Success", border_style="green"))


@cli.command()
@click.argument("prompt", required=False, default="")
@click.option(
    "--file",
    "request_file",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Read the request from a file instead of PROMPT",
)
@click.option(
    "--repo",
    default=".",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Repository root (default: current directory)",
)
@click.option("--resume", is_flag=True, help="Resume an interrupted planning session")
@click.option("--run-id", default=None, help="Run to resume (default: latest)")
@click.option("--backend", default="openai", show_default=True, help="Agent backend")
@click.option("--base-url", default=None, help="OpenAI-compatible endpoint URL")
def plan(
    prompt: str,
    request_file: Path | None,
    repo: Path,
    resume: bool,
    run_id: str | None,
    backend: str,
    base_url: str | None,
) -> None:
    """Clarify PROMPT interactively and write a plan for ``run --plan``."""
    repo = repo.resolve()
    request = prompt
    if request_file is not None:
        request = request_file.read_text(encoding="utf-8").strip()
    if not request and not resume:
        raise click.UsageError("Provide a PROMPT, --file or --resume")

    settings = _resolve_resume(_settings(repo, request, run_id=run_id, resume=resume), run_id)
    config = _load_config(repo)
    agent_backend = _create_backend(backend, base_url, settings)
    location = _run_mode(
        settings,
        config,
        PlanningEngine.phase_keys,
        lambda sink: planning_engine_factory(config, agent_backend, sink, ConsoleClarifier()),
        RunMode.PLAN.value,
    )
    console.print(
        Panel(
            f"Plan written to {location}\nRun it with: swarmpipe run --plan {location}",
            title="Success",
            border_style="green",
        )
    )


@cli.command()
@click.argument("feedback")
@click.option(
    "--repo",
    default=".",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Repository root (default: current directory)",
)
@click.option("--run-id", "review_run_id", default=None, help="Run to review (default: latest)")
@click.option("--backend", default="openai", show_default=True, help="Agent backend")
@click.option("--base-url", default=None, help="OpenAI-compatible endpoint URL")
def review(
    feedback: str,
    repo: Path,
    review_run_id: str | None,
    backend: str,
    base_url: str | None,
) -> None:
    """Re-implement a previous run, addressing FEEDBACK."""
    repo = repo.resolve()
    settings = _settings(repo, "", review_run_id=review_run_id)
    config = _load_config(repo)
    _run_and_report(
        settings, config, _create_backend(backend, base_url, settings), review_feedback=feedback
    )


@cli.command()
@click.option(
    "--repo",
    default=".",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Repository root (default: current directory)",
)
@click.option("--run-id", default=None, help="Run to inspect (default: latest)")
def status(repo: Path, run_id: str | None) -> None:
    """Show the checkpoint of an interrupted run."""
    settings = _settings(repo.resolve(), "")
    store = FilesystemCheckpointStore(settings.swarm_root)
    run_id = run_id or store.latest_run_id()
    checkpoint = store.load(run_id) if run_id else None
    if checkpoint is None:
        final = store.load_final(run_id) if run_id else None
        if final is not None:
            console.print(f"Run {run_id} completed ({len(final.tasks)} task(s)).")
            return
        console.print("No resumable run found.")
        return

    tracker = ProgressTracker(checkpoint.run_id)
    if checkpoint.mode is RunMode.ANALYZE:
        tracker.init_phase_keys(RepoAnalysisEngine.phase_keys)
    elif checkpoint.mode is RunMode.PLAN:
        tracker.init_phase_keys(PlanningEngine.phase_keys)
    else:
        tracker.init_phases(_load_config(settings.repo_root).phases)
    console.print(f"[dim]Mode: {checkpoint.mode.value}[/]")
    for key in checkpoint.completed_phases:
        tracker.set_phase_status(key, PhaseStatus.DONE)
    if checkpoint.active_phase:
        tracker.set_phase_status(checkpoint.active_phase, PhaseStatus.ACTIVE)
    tracker.init_streams(list(checkpoint.tasks))
    for i, result in enumerate(checkpoint.stream_results):
        if result:
            tracker.update_stream(i, StreamStatus.DONE)
    _print_progress(tracker)
    if checkpoint.iteration_progress:
        console.print("[dim]In-flight loops:[/]")
        for key, snapshot in checkpoint.iteration_progress:
            console.print(f"  {key}: {snapshot.completed_iterations} iteration(s) done")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
