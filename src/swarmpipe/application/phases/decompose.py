"""Task decomposition into a dependency-annotated task list."""

from swarmpipe.application.phases.base import PhaseExecutor
from swarmpipe.domain.config import DecomposePhaseConfig
from swarmpipe.domain.exceptions import TaskParseError
from swarmpipe.domain.parsing import parse_decomposed_tasks


def decompose_prompt(spec: str, marker: str) -> str:
    return (
        "Break this spec into independent tasks. "
        f"Mark frontend tasks with {marker}. "
        "When a task needs the output of another task, list that task's id in dependsOn. "
        "Respond with ONLY a JSON array, no other text. Format: "
        f'[{{"id": 1, "task": "{marker} Task 1", "dependsOn": []}}, '
        '{"id": 2, "task": "Task 2", "dependsOn": [1]}]'
        f"\nSpec:\n{spec}"
    )


class DecomposePhase(PhaseExecutor[DecomposePhaseConfig]):
    """Asks an agent for the task list and normalizes its JSON.

    Output that cannot be parsed is fatal for the run: it raises
    ``TaskParseError`` instead of retrying the same prompt.
    """

    async def execute(self, phase: DecomposePhaseConfig, phase_key: str) -> None:
        ctx = self.state.context
        self.emitter.info("Decomposing specification into tasks")
        raw = await self.caller.call_isolated(
            phase.agent,
            self.with_repo_context(decompose_prompt(ctx.spec, phase.frontend_marker)),
            session_key=phase_key,
        )
        tasks = parse_decomposed_tasks(raw).unwrap()
        if not tasks:
            raise TaskParseError("Decomposition returned no tasks", raw)

        ctx.set_tasks(tasks)
        lines = []
        for i, task in enumerate(ctx.tasks):
            deps = ctx.task_deps[i]
            suffix = f" (after {', '.join(str(d) for d in deps)})" if deps else ""
            lines.append(f"{i + 1}. {task}{suffix}")
        self.emitter.info(f"Tasks: {len(tasks)}")
        await self.write_role_summary(
            f"{phase.agent}-tasks", "## Decomposed Tasks\n\n" + "\n".join(lines)
        )
