"""
Ordered cascade deletes for backends without foreign-key cascades.

A cascade is a list of named steps run strictly in order, children before
parents. Each step deletes whatever still matches, so a cascade interrupted
partway can simply be run again: completed steps find nothing left and the
remaining ones finish the job.
"""

import logging
from typing import Awaitable, Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)

StepAction = Callable[[], Awaitable[int]]


class CascadeDelete:
    """Named sequence of delete steps."""

    def __init__(self, name: str):
        self.name = name
        self.steps: List[Tuple[str, StepAction]] = []

    def step(self, label: str, action: StepAction) -> "CascadeDelete":
        self.steps.append((label, action))
        return self

    async def run(self) -> Dict[str, int]:
        """
        Run every step in order.

        Returns:
            Number of records each step deleted, keyed by label

        Raises:
            Exception: Whatever a step raised; later steps are not attempted
        """
        results: Dict[str, int] = {}
        for label, action in self.steps:
            try:
                results[label] = await action()
            except Exception as e:
                logger.error(
                    f"Cascade {self.name} stopped at step '{label}' "
                    f"(completed: {', '.join(results) or 'none'}): {e}"
                )
                raise
        logger.info(f"Cascade {self.name} complete: {results}")
        return results
