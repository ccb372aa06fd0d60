"""Dependency gating for scheduled tasks.

A task may only run once its prerequisites are satisfied. Whether a non-empty
dependency set is satisfied is decided by a pluggable DependencyOracle.
"""

import logging
from collections.abc import Collection
from typing import Protocol

from phaseops.config import PhaseOpsConfig
from phaseops.ledger import CompletionLedger
from phaseops.outcomes import OutcomeSource

logger = logging.getLogger(__name__)


class DependencyOracle(Protocol):
    """Answers whether a set of dependency task ids is satisfied."""

    def is_satisfied(self, dependency_ids: Collection[str]) -> bool: ...


class LedgerDependencyOracle:
    """Satisfied when every dependency is recorded in the completion ledger."""

    def __init__(self, ledger: CompletionLedger) -> None:
        self.ledger = ledger

    def is_satisfied(self, dependency_ids: Collection[str]) -> bool:
        missing = [dep for dep in dependency_ids if not self.ledger.is_completed(dep)]
        if missing:
            logger.debug(f"Dependencies not yet completed: {', '.join(missing)}")
        return not missing


class RandomDependencyOracle:
    """Development placeholder that passes with a fixed probability.

    It does not look at any completion state. Only use it to exercise the
    blocked path in demos.
    """

    def __init__(self, outcomes: OutcomeSource, pass_rate: float = 0.8) -> None:
        self.outcomes = outcomes
        self.pass_rate = pass_rate

    def is_satisfied(self, dependency_ids: Collection[str]) -> bool:
        return self.outcomes.random() > (1 - self.pass_rate)


class DependencyGate:
    """Decides per task whether its prerequisites are satisfied."""

    def __init__(self, oracle: DependencyOracle) -> None:
        self.oracle = oracle

    def ready(self, dependency_ids: Collection[str]) -> bool:
        """Return True when the task may run.

        An empty dependency set is always ready and never reaches the oracle.
        Oracle exceptions propagate to the caller.
        """
        if not dependency_ids:
            return True
        return self.oracle.is_satisfied(dependency_ids)


def create_oracle(
    config: PhaseOpsConfig, ledger: CompletionLedger, outcomes: OutcomeSource
) -> DependencyOracle:
    """Build the oracle selected by ``config.dependency_mode``.

    Raises:
        ValueError: If the mode is unknown
    """
    if config.dependency_mode == "ledger":
        return LedgerDependencyOracle(ledger)
    if config.dependency_mode == "random":
        logger.warning(
            "Using random dependency oracle; readiness does not reflect real completion state"
        )
        return RandomDependencyOracle(outcomes, config.dependency_pass_rate)
    raise ValueError(f"Unknown dependency mode: {config.dependency_mode}")
