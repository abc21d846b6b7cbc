"""
Implementation streams, one per decomposed task.

Tasks with dependencies run wave by wave; inside a wave streams run
concurrently when the phase is parallel. A stream whose result is already
in the context is skipped, which makes a stream the unit of resumability.
"""

from swarmpipe.application.phases.base import PhaseExecutor, fan_out, raise_for_failures
from swarmpipe.domain.config import ImplementPhaseConfig
from swarmpipe.domain.exceptions import ShutdownRequested
from swarmpipe.domain.models import StreamStatus
from swarmpipe.domain.parsing import is_frontend_task, response_contains, truncate
from swarmpipe.domain.scheduling import compute_waves

DEPENDENCY_SUMMARY_CHARS = 2000


def code_review_prompt(content: str) -> str:
    return f"Review this implementation:\n{content}"


class ImplementPhase(PhaseExecutor[ImplementPhaseConfig]):
    async def execute(self, phase: ImplementPhaseConfig, phase_key: str) -> None:
        ctx = self.state.context
        total = len(ctx.tasks)
        # Keep results aligned with tasks
        ctx.stream_results = (ctx.stream_results + [""] * total)[:total]

        self.emitter.streams_initialized(ctx.tasks)
        for i, result in enumerate(ctx.stream_results):
            if result:
                self.emitter.stream_status(i, StreamStatus.SKIPPED)

        if ctx.has_dependencies():
            waves = compute_waves(ctx.decomposed_tasks())
        else:
            waves = [list(range(total))]
        self.emitter.info(f"Launching {total} streams in {len(waves)} wave(s)")

        async def worker(i: int) -> None:
            await self._run_stream(phase, phase_key, i)

        for w, wave in enumerate(waves):
            pending = [i for i in wave if not ctx.stream_results[i]]
            if not pending:
                continue
            self.emitter.info(
                f"Wave {w + 1}/{len(waves)}: streams {', '.join(str(i + 1) for i in pending)}"
            )
            failed = await fan_out(pending, worker, phase.parallel)
            await self.state.persist()
            raise_for_failures(failed, len(pending))

    def _engineering_prompt(self, i: int) -> str:
        ctx = self.state.context
        task = ctx.tasks[i]
        parts = [f"Spec:\n{ctx.spec}"]
        if is_frontend_task(task) and ctx.design_spec:
            parts.append(f"Design:\n{ctx.design_spec}")
        dependency_notes = [
            f"Task {d} ({ctx.tasks[d - 1]}) result:\n"
            f"{truncate(ctx.stream_results[d - 1], DEPENDENCY_SUMMARY_CHARS)}"
            for d in ctx.task_deps[i]
            if 0 < d <= len(ctx.tasks) and ctx.stream_results[d - 1]
        ]
        if dependency_notes:
            parts.append("Completed dependencies:\n" + "\n\n".join(dependency_notes))
        parts.append(f"Task:\n{task}")
        if self.services.review_feedback:
            parts.append(f"Reviewer feedback on the previous run:\n{self.services.review_feedback}")
        return self.with_repo_context("\n\n".join(parts) + "\n\nImplement this task.")

    async def _run_stream(self, phase: ImplementPhaseConfig, phase_key: str, i: int) -> None:
        state = self.state
        ctx = state.context
        label = f"S{i + 1}"
        state.raise_if_shutdown()

        self.emitter.stream_status(i, StreamStatus.ENGINEERING)
        session = await self.caller.create_session(
            phase.agent, session_key=f"{phase_key}/stream-{i + 1}"
        )
        try:
            code_key = f"stream-{i}-code"
            saved = state.iteration(code_key)
            if saved is not None:
                code = saved.content
            else:
                self.emitter.info(f"{label}: {phase.agent} is implementing {ctx.tasks[i]}")
                code = await self.caller.send(session, self._engineering_prompt(i))
                if (
                    phase.clarification_agent
                    and phase.clarification_keyword
                    and response_contains(code, phase.clarification_keyword)
                ):
                    self.emitter.info(f"{label}: {phase.agent} needs clarification")
                    clarification = await self.caller.call_isolated(
                        phase.clarification_agent,
                        f"The engineer needs clarification:\n{code}",
                    )
                    code = await self.caller.send(
                        session, f"Clarification:\n{clarification}\n\nImplement this task."
                    )
                state.set_iteration(code_key, code, 0)
                await state.persist()

            async def fix(content: str, feedback: str, clarification: str | None) -> str:
                prompt = f"Current implementation:\n{content}\n\nCode review feedback:\n{feedback}"
                if clarification:
                    prompt += f"\n\nClarification:\n{clarification}"
                return await self.caller.send(session, f"{prompt}\n\nFix all issues.")

            if phase.reviews:
                self.emitter.stream_status(i, StreamStatus.REVIEWING)
            for r, review in enumerate(phase.reviews):
                code = await self.services.review_loop.run(
                    phase.agent,
                    review,
                    code,
                    code_review_prompt,
                    iteration_key=f"stream-{i}-review-{r}",
                    revise=fix,
                    clarification_agent=phase.clarification_agent,
                )

            if phase.qa is not None:
                self.emitter.stream_status(i, StreamStatus.TESTING)

                def qa_prompt(content: str) -> str:
                    return (
                        f"Spec:\n{ctx.spec}\n\nImplementation:\n{content}\n\n"
                        "Validate the implementation against the spec."
                    )

                async def fix_defects(content: str, report: str, _: str | None) -> str:
                    return await self.caller.send(
                        session,
                        f"Current implementation:\n{content}\n\nQA Report:\n{report}\n\n"
                        "Fix all reported issues.",
                    )

                code = await self.services.review_loop.run(
                    phase.agent,
                    phase.qa,
                    code,
                    qa_prompt,
                    iteration_key=f"stream-{i}-qa",
                    revise=fix_defects,
                )

            ctx.stream_results[i] = code
            await self.write_role_summary(f"engineer-stream-{i + 1}", code)
            await state.persist()
            self.emitter.stream_status(i, StreamStatus.DONE)
        except ShutdownRequested:
            raise
        except Exception as e:
            self.emitter.stream_status(i, StreamStatus.FAILED)
            self.emitter.error(f"{label} failed: {type(e).__name__}: {e}")
            raise
        finally:
            await self.caller.destroy(session)
