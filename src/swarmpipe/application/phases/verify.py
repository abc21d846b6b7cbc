"""Build/test/lint verification with a fix agent."""

import asyncio

from swarmpipe.application.phases.base import PhaseExecutor
from swarmpipe.domain.config import VerifyConfig, VerifyPhaseConfig, merge_verify_configs
from swarmpipe.domain.models import CommandResult

VERIFY_ITERATION_KEY = "verify"


def failure_report(failures: list[tuple[str, CommandResult]]) -> str:
    sections = []
    for name, result in failures:
        status = "timed out" if result.timed_out else f"exit code {result.returncode}"
        sections.append(f"### {name}: `{result.command}` ({status})\n\n```\n{result.output}\n```")
    return "\n\n".join(sections)


def fix_prompt(report: str) -> str:
    return f"Verification failed:\n\n{report}\n\nFix all failures so every command passes."


class VerifyPhase(PhaseExecutor[VerifyPhaseConfig]):
    """
    Runs the resolved verification commands until they pass.

    Each failing round sends the combined command output to the fix agent.
    Running out of iterations is not fatal: the run continues with a
    warning, mirroring how review loops accept best-effort content.
    """

    async def execute(self, phase: VerifyPhaseConfig, phase_key: str) -> None:
        commands = await self._resolve_commands()
        if commands.is_empty():
            self.emitter.info("No verification commands configured or detected, skipping")
            return

        state = self.state
        max_iter = phase.max_iterations
        start = 1
        snapshot = state.iteration(VERIFY_ITERATION_KEY)
        if snapshot is not None:
            start = snapshot.completed_iterations + 1
            self.emitter.info(f"Resuming verification at iteration {start}/{max_iter}")

        for i in range(start, max_iter + 1):
            state.raise_if_shutdown()
            self.emitter.info(f"Verification iteration {i}/{max_iter}")
            failures = await self._run_commands(commands)
            if not failures:
                self.emitter.info("All verification commands passed")
                state.set_iteration(VERIFY_ITERATION_KEY, "", max_iter)
                await state.persist()
                await self.write_role_summary("verify", "## Verification\n\nAll commands passed.")
                return

            report = failure_report(failures)
            names = ", ".join(name for name, _ in failures)
            self.emitter.warn(f"Verification failed: {names}")
            fix = await self.caller.call_isolated(
                phase.fix_agent,
                self.with_repo_context(fix_prompt(report)),
                session_key=f"{phase_key}/fix-{i}",
            )
            state.set_iteration(VERIFY_ITERATION_KEY, fix, i)
            await state.persist()

        # Final check after the last fix
        failures = await self._run_commands(commands)
        if not failures:
            self.emitter.info("All verification commands passed")
            await self.write_role_summary("verify", "## Verification\n\nAll commands passed.")
            return
        report = failure_report(failures)
        self.emitter.warn(
            f"Verification still failing after {max_iter} iteration(s), continuing with best effort"
        )
        await self.write_role_summary("verify", f"## Verification\n\nStill failing:\n\n{report}")

    async def _resolve_commands(self) -> VerifyConfig:
        settings = self.services.settings
        detected = await asyncio.to_thread(
            self.services.verify_detector.detect, settings.repo_root
        )
        return merge_verify_configs(
            settings.verify_overrides, self.services.config.verify, detected
        )

    async def _run_commands(self, commands: VerifyConfig) -> list[tuple[str, CommandResult]]:
        settings = self.services.settings
        failures = []
        for name, command in commands.commands():
            self.emitter.info(f"Running {name}: {command}")
            result = await self.services.shell.run(
                command, str(settings.repo_root), settings.verify_timeout_s
            )
            if not result.passed:
                failures.append((name, result))
        return failures
