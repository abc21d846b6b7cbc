"""Tests for the command-line interface, driven by the mock backend."""

import pytest
from click.testing import CliRunner

from swarmpipe import cli as cli_module
from swarmpipe.cli import cli
from swarmpipe.domain.models import PipelineCheckpoint, RunMode
from swarmpipe.infrastructure.agents import MockAgentBackend
from swarmpipe.infrastructure.persistence import FilesystemCheckpointStore

AGENTS = (
    "pm",
    "spec-reviewer",
    "designer",
    "design-reviewer",
    "engineer",
    "code-reviewer",
    "tester",
    "cross-model-reviewer",
)

CLEAN_ENV = {
    name: None
    for name in (
        "SWARM_DIR",
        "AGENTS_DIR",
        "SESSION_TIMEOUT_S",
        "MAX_RETRIES",
        "MAX_AUTO_RESUME",
        "VERBOSE",
        "PRIMARY_MODEL",
        "REVIEW_MODEL",
    )
}


@pytest.fixture
def repo(tmp_path):
    agents_dir = tmp_path / ".github" / "agents"
    agents_dir.mkdir(parents=True)
    for agent in AGENTS:
        (agents_dir / f"{agent}.md").write_text(f"You are the {agent}.")
    return tmp_path


@pytest.fixture
def runner():
    return CliRunner(env=CLEAN_ENV)


def invoke_run(runner, repo, *args):
    return runner.invoke(
        cli, ["run", "--repo", str(repo), "--backend", "mock", "--run-id", "cli-run", *args]
    )


class TestRunCommand:
    """Tests for ``swarmpipe run``."""

    def test_dry_run_completes(self, runner, repo) -> None:
        result = invoke_run(runner, repo, "Add a todo list")

        assert result.exit_code == 0, result.output
        assert "Success" in result.output
        assert (repo / "doc" / "swarm-summary.md").exists()
        assert (repo / ".swarm" / "runs" / "cli-run" / "final.json").exists()
        assert not (repo / ".swarm" / "runs" / "cli-run" / "checkpoint.json").exists()

    def test_requires_prompt(self, runner, repo) -> None:
        result = runner.invoke(cli, ["run", "--repo", str(repo), "--backend", "mock"])

        assert result.exit_code == 2
        assert "Provide a PROMPT" in result.output

    def test_unknown_backend(self, runner, repo) -> None:
        result = runner.invoke(cli, ["run", "--repo", str(repo), "--backend", "nope", "Hi"])

        assert result.exit_code == 2
        assert "Backend 'nope' not found" in result.output

    def test_plan_without_requirements(self, runner, repo) -> None:
        plan = repo / "plan.md"
        plan.write_text("## Context\nNothing useful")

        result = invoke_run(runner, repo, "--plan", str(plan))

        assert result.exit_code == 2
        assert "Refined Requirements" in result.output

    def test_plan_skips_spec_phase(self, runner, repo) -> None:
        plan = repo / "plan.md"
        plan.write_text("## Refined Requirements\n- Users can add todos\n")

        result = invoke_run(runner, repo, "--plan", str(plan))

        assert result.exit_code == 0, result.output
        assert "skipped spec" in result.output

    def test_resume_without_previous_run(self, runner, repo) -> None:
        result = runner.invoke(
            cli, ["run", "--repo", str(repo), "--backend", "mock", "--resume"]
        )

        assert result.exit_code == 2
        assert "No previous run to resume" in result.output

    def test_invalid_environment(self, runner, repo) -> None:
        result = runner.invoke(
            cli,
            ["run", "--repo", str(repo), "--backend", "mock", "Hi"],
            env={"MAX_RETRIES": "zero"},
        )

        assert result.exit_code == 2
        assert "Must be a positive integer" in result.output

    def test_missing_instructions_fail_run(self, runner, tmp_path) -> None:
        result = runner.invoke(
            cli,
            ["run", "--repo", str(tmp_path), "--backend", "mock", "Hi"],
            env={"MAX_AUTO_RESUME": "1"},
        )

        assert result.exit_code == 1
        assert "Failed to load agent instructions" in result.output


class TestReviewCommand:
    def test_review_after_completed_run(self, runner, repo) -> None:
        assert invoke_run(runner, repo, "Add a todo list").exit_code == 0

        result = runner.invoke(
            cli, ["review", "Todos vanish on reload", "--repo", str(repo), "--backend", "mock"]
        )

        assert result.exit_code == 0, result.output
        assert "Success" in result.output

    def test_review_without_prior_run(self, runner, repo) -> None:
        result = runner.invoke(
            cli, ["review", "Looks wrong", "--repo", str(repo), "--backend", "mock"]
        )

        assert result.exit_code == 1


class TestStatusCommand:
    def test_no_runs(self, runner, repo) -> None:
        result = runner.invoke(cli, ["status", "--repo", str(repo)])

        assert result.exit_code == 0
        assert "No resumable run found." in result.output

    def test_completed_run(self, runner, repo) -> None:
        invoke_run(runner, repo, "Add a todo list")

        result = runner.invoke(cli, ["status", "--repo", str(repo)])

        assert result.exit_code == 0
        assert "Run cli-run completed" in result.output


def flatten(output: str) -> str:
    """Collapse rich panel borders and line wrapping into single spaces."""
    return " ".join(output.replace("│", " ").split())


def failing_backend(error: Exception) -> MockAgentBackend:
    def handler(agent: str, prompt: str) -> str:
        raise error

    return MockAgentBackend(handler=handler)


class TestRunFailureReporting:
    """Failures that survive auto-resume are reported with a resume hint."""

    FAIL_ENV = {"MAX_AUTO_RESUME": "1", "MAX_RETRIES": "1"}

    def invoke_failing(self, runner, repo, monkeypatch, error: Exception):
        backend = failing_backend(error)
        monkeypatch.setattr(cli_module, "_create_backend", lambda *args: backend)
        return runner.invoke(
            cli,
            ["run", "--repo", str(repo), "--run-id", "cli-run", "Add a todo list"],
            env=self.FAIL_ENV,
        )

    def test_session_timeout_reports_checkpoint(self, runner, repo, monkeypatch) -> None:
        result = self.invoke_failing(
            runner, repo, monkeypatch, TimeoutError("agent session timed out")
        )

        assert result.exit_code == 1
        assert not isinstance(result.exception, TimeoutError)
        output = flatten(result.output)
        assert "Failed phase: PM Drafting (spec-0)" in output
        assert "Auto-resume attempts used: 1/1" in output
        assert "Checkpoint kept for run cli-run" in output
        assert "swarmpipe run --resume --run-id cli-run" in output
        assert (repo / ".swarm" / "runs" / "cli-run" / "checkpoint.json").exists()

    def test_unexpected_error_is_reported(self, runner, repo, monkeypatch) -> None:
        result = self.invoke_failing(runner, repo, monkeypatch, RuntimeError("backend exploded"))

        assert result.exit_code == 1
        output = flatten(result.output)
        assert "RuntimeError: backend exploded" in output
        assert "Checkpoint kept for run cli-run" in output

    def test_event_log_flushed_on_failure(self, runner, repo, monkeypatch) -> None:
        self.invoke_failing(runner, repo, monkeypatch, RuntimeError("backend exploded"))

        events = (repo / ".swarm" / "runs" / "cli-run" / "events.jsonl").read_text()
        assert '"PHASE_ACTIVATED"' in events


class TestAnalyzeCommand:
    """Tests for ``swarmpipe analyze``."""

    def test_writes_analysis(self, runner, repo) -> None:
        """Mode agents run on bundled instructions when the repository has none."""
        result = runner.invoke(
            cli, ["analyze", "--repo", str(repo), "--backend", "mock", "--run-id", "cli-an"]
        )

        assert result.exit_code == 0, result.output
        assert "Analysis written to" in flatten(result.output)
        analysis = repo / ".swarm" / "analysis" / "repo-analysis.md"
        assert "dry-run output from architect" in analysis.read_text()
        assert (repo / ".swarm" / "runs" / "cli-an" / "final.json").exists()

    def test_failure_hint_names_analyze(self, runner, repo, monkeypatch) -> None:
        backend = failing_backend(TimeoutError("agent session timed out"))
        monkeypatch.setattr(cli_module, "_create_backend", lambda *args: backend)

        result = runner.invoke(
            cli,
            ["analyze", "--repo", str(repo), "--run-id", "cli-an"],
            env=TestRunFailureReporting.FAIL_ENV,
        )

        assert result.exit_code == 1
        output = flatten(result.output)
        assert "Failed phase: Repository Analysis (analyze-0)" in output
        assert "swarmpipe analyze --resume --run-id cli-an" in output


class TestPlanCommand:
    """Tests for ``swarmpipe plan``."""

    def invoke_plan(self, runner, repo, monkeypatch, *args, input=None):
        backend = MockAgentBackend()
        backend.script(
            "planner", "Which database?", "REQUIREMENTS_CLEAR\n## Goals\nTodos in sqlite"
        )
        backend.script("analyst", "No persistence layer yet.")
        monkeypatch.setattr(cli_module, "_create_backend", lambda *args: backend)
        result = runner.invoke(
            cli, ["plan", "--repo", str(repo), "--run-id", "cli-plan", *args], input=input
        )
        return result, backend

    def test_interactive_plan_feeds_run(self, runner, repo, monkeypatch) -> None:
        result, backend = self.invoke_plan(
            runner, repo, monkeypatch, "Add a todo list", input="sqlite\nsingle user\n\n"
        )

        assert result.exit_code == 0, result.output
        assert "Which database?" in result.output
        answer_prompt = backend.calls_for("planner")[1].prompt
        assert answer_prompt == "User's answers:\n\nsqlite\nsingle user"

        latest = repo / ".swarm" / "plans" / "plan-latest.md"
        assert "### Goals\nTodos in sqlite" in latest.read_text()
        assert "swarmpipe run --plan" in flatten(result.output)

        run_result = invoke_run(runner, repo, "--plan", str(latest))
        assert run_result.exit_code == 0, run_result.output
        assert "skipped spec" in run_result.output

    def test_literal_newlines_in_answers(self, runner, repo, monkeypatch) -> None:
        result, backend = self.invoke_plan(
            runner, repo, monkeypatch, "Add a todo list", input="sqlite\\nsingle user\n\n"
        )

        assert result.exit_code == 0, result.output
        assert backend.calls_for("planner")[1].prompt.endswith("sqlite\nsingle user")

    def test_request_from_file(self, runner, repo, monkeypatch) -> None:
        request = repo / "request.md"
        request.write_text("Add a todo list\n")

        result, backend = self.invoke_plan(
            runner, repo, monkeypatch, "--file", str(request), input="\n"
        )

        assert result.exit_code == 0, result.output
        assert "Add a todo list" in backend.calls_for("planner")[0].prompt

    def test_requires_request(self, runner, repo) -> None:
        result = runner.invoke(cli, ["plan", "--repo", str(repo), "--backend", "mock"])

        assert result.exit_code == 2
        assert "Provide a PROMPT" in result.output


class TestModeCheckpoints:
    """Runs of one mode never resume another mode's checkpoint."""

    def save_plan_checkpoint(self, repo) -> None:
        FilesystemCheckpointStore(repo / ".swarm").save(
            PipelineCheckpoint(
                run_id="plan-run",
                mode=RunMode.PLAN,
                issue_body="Add a todo list",
                active_phase="plan-clarify-0",
            )
        )

    def test_run_refuses_plan_checkpoint(self, runner, repo) -> None:
        self.save_plan_checkpoint(repo)

        result = invoke_run(runner, repo, "--resume", "--run-id", "plan-run")

        assert result.exit_code == 1
        output = flatten(result.output)
        assert "is a plan run" in output
        assert "swarmpipe plan" in output

    def test_status_shows_plan_phases(self, runner, repo) -> None:
        self.save_plan_checkpoint(repo)

        result = runner.invoke(cli, ["status", "--repo", str(repo), "--run-id", "plan-run"])

        assert result.exit_code == 0, result.output
        assert "Mode: plan" in result.output
        assert "Requirements Clarification" in result.output
