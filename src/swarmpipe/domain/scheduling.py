"""
Dependency-aware wave scheduling.

A wave is a set of task indices whose dependencies are all satisfied by
earlier waves, so every member of a wave may run concurrently. Waves are
derived from the task list on every run and never persisted.
"""

import logging

from swarmpipe.domain.models import DecomposedTask

logger = logging.getLogger(__name__)


def compute_waves(tasks: list[DecomposedTask]) -> list[list[int]]:
    """
    Group tasks into ordered waves of 0-based task indices.

    Dependency ids that do not match any task are dropped. When no remaining
    task has all of its dependencies placed (a cycle), every remaining task
    is emitted as one final wave so the run can still make progress.

    Args:
        tasks: Tasks with ids and dependency ids

    Returns:
        Waves in execution order; every index appears exactly once
    """
    index_of = {task.id: i for i, task in enumerate(tasks)}
    deps: list[set[int]] = [
        {index_of[d] for d in task.depends_on if d in index_of and index_of[d] != i}
        for i, task in enumerate(tasks)
    ]

    waves: list[list[int]] = []
    placed: set[int] = set()
    remaining = list(range(len(tasks)))

    while remaining:
        wave = [i for i in remaining if deps[i] <= placed]
        if not wave:
            logger.warning(
                "Dependency cycle among tasks %s; scheduling them together",
                [tasks[i].id for i in remaining],
            )
            waves.append(remaining)
            break
        waves.append(wave)
        placed.update(wave)
        remaining = [i for i in remaining if i not in placed]

    return waves
