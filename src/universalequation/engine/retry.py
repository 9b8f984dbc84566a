"""
Allocation Retry
================
Walks the lattice size down until the allocation succeeds.

The search is an explicit state machine:

    SIZING --MemoryError--> DEGRADED --success--> STABLE
       |                        |
       +------success-----------+--dimension < 1 / attempts spent--> FATAL

On each failure the vertex cap is halved while it is the binding limit
(cap < 2^d) and still above 1; otherwise the dimension drops by one and the
cap is reset to the requested cap, clamped to the new corner count. A
lattice that fails even with a single vertex fails because of its
dimension, so once halving has reached 1 the search only drops dimensions.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
import logging
from typing import TYPE_CHECKING, NoReturn, Optional

from universalequation.config import RETRY_ATTEMPT_LIMIT
from universalequation.model.errors import ResourceExhaustion

if TYPE_CHECKING:
    from universalequation.engine.lattice import LatticeGenerator
    from universalequation.model.results import Lattice

logger = logging.getLogger(__name__)


class RetryState(StrEnum):
    SIZING = "Sizing"
    DEGRADED = "Degraded"
    STABLE = "Stable"
    FATAL = "Fatal"


@dataclass(frozen=True)
class RetryOutcome:
    """Where the retry loop settled. ``lattice`` is None only for FATAL."""
    state: RetryState
    dimension: int
    vertex_cap: int
    attempts: int
    lattice: Optional[Lattice] = None

    @property
    def degraded(self) -> bool:
        return self.attempts > 1


class RetryManager:
    def __init__(self, attempt_limit: int = RETRY_ATTEMPT_LIMIT) -> None:
        self.attempt_limit = attempt_limit
        self.state = RetryState.SIZING
        self.last_outcome: Optional[RetryOutcome] = None

    @staticmethod
    def shrink(
        dimension: int,
        vertex_cap: int,
        ceiling: Optional[int] = None,
        halve: bool = True
    ) -> tuple[int, int]:
        """
        Next (dimension, cap) to try after a failed allocation.

        Args:
            ceiling: Cap restored when the dimension drops. Defaults to
                ``vertex_cap``.
            halve: Whether halving a binding cap is still worth trying.
        """
        if halve and 1 < vertex_cap < (1 << dimension):
            return dimension, vertex_cap // 2
        dimension -= 1
        ceiling = vertex_cap if ceiling is None else ceiling
        return dimension, min(ceiling, 1 << max(dimension, 0))

    def build(self, generator: LatticeGenerator, dimension: int, vertex_cap: int) -> RetryOutcome:
        """
        Build a lattice, degrading on ``MemoryError``.

        Raises:
            ResourceExhaustion: If no size down to dimension 1 could be
                allocated, or the attempt limit was reached.
        """
        self.state = RetryState.SIZING
        requested = (dimension, vertex_cap)
        attempts = 0
        halve = True

        while True:
            attempts += 1
            try:
                lattice = generator.build(dimension, vertex_cap)
            except MemoryError as e:
                failed = (dimension, vertex_cap)
                if vertex_cap == 1 and (1 << dimension) > 1:
                    halve = False
                dimension, vertex_cap = self.shrink(dimension, vertex_cap, requested[1], halve)
                if dimension < 1 or attempts >= self.attempt_limit:
                    self._fail(requested, failed, attempts, e)
                self.state = RetryState.DEGRADED
                logger.warning(
                    f"Lattice allocation failed at d={failed[0]}, cap={failed[1]} ({e!r}); "
                    f"retrying with d={dimension}, cap={vertex_cap}."
                )
                continue

            self.state = RetryState.STABLE
            outcome = RetryOutcome(self.state, dimension, vertex_cap, attempts, lattice)
            if outcome.degraded:
                logger.warning(
                    f"Lattice degraded from d={requested[0]}, cap={requested[1]} "
                    f"to d={dimension}, cap={vertex_cap} after {attempts} attempts."
                )
            self.last_outcome = outcome
            return outcome

    def _fail(
        self,
        requested: tuple[int, int],
        failed: tuple[int, int],
        attempts: int,
        cause: MemoryError
    ) -> NoReturn:
        self.state = RetryState.FATAL
        self.last_outcome = RetryOutcome(self.state, failed[0], failed[1], attempts)
        message = (
            f"Could not allocate a lattice for d={requested[0]}, cap={requested[1]}; "
            f"last attempt d={failed[0]}, cap={failed[1]} after {attempts} attempts."
        )
        logger.error(message)
        raise ResourceExhaustion(message, failed[0], failed[1], attempts) from cause
