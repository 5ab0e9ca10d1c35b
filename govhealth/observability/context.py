"""
Evaluation scope for governance runs.

An EvaluationContext names one evaluate_governance() call and records the
size of its inputs. While it is active both log formatters tag records
with its id, and JSONFormatter adds the input sizes under "inputs".
"""

import contextvars
import time
import uuid
from typing import Optional

_current_evaluation: contextvars.ContextVar[Optional["EvaluationContext"]] = contextvars.ContextVar(
    "current_evaluation", default=None
)


def generate_evaluation_id() -> str:
    return f"eval-{uuid.uuid4().hex[:16]}"


def current_evaluation() -> Optional["EvaluationContext"]:
    """The innermost active evaluation, None outside one."""
    return _current_evaluation.get()


def get_evaluation_id() -> Optional[str]:
    ctx = _current_evaluation.get()
    return ctx.evaluation_id if ctx is not None else None


class EvaluationContext:
    """
    Context manager scoping log records to one governance evaluation.

    Usage:
        with EvaluationContext(proposals=12, agents=4, snapshots=30) as ctx:
            logger.debug(f"Evaluating governance: {ctx.describe_inputs()}")
            ...
            logger.debug(f"Evaluation complete in {ctx.elapsed_ms:.1f}ms")

        # Reuse an upstream id (e.g. the ingestion run's):
        with EvaluationContext("eval-nightly-42"):
            ...
    """

    def __init__(
        self,
        evaluation_id: Optional[str] = None,
        *,
        proposals: int = 0,
        agents: int = 0,
        snapshots: int = 0,
    ):
        self.evaluation_id = evaluation_id or generate_evaluation_id()
        self.proposals = proposals
        self.agents = agents
        self.snapshots = snapshots
        self._started: Optional[float] = None
        self._token: Optional[contextvars.Token] = None

    @property
    def inputs(self) -> dict[str, int]:
        return {"proposals": self.proposals, "agents": self.agents, "snapshots": self.snapshots}

    def describe_inputs(self) -> str:
        return f"{self.proposals} proposals, {self.agents} agents, {self.snapshots} snapshots"

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since the context was entered; 0 before entry."""
        if self._started is None:
            return 0.0
        return (time.perf_counter() - self._started) * 1000

    def __enter__(self) -> "EvaluationContext":
        self._started = time.perf_counter()
        self._token = _current_evaluation.set(self)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _current_evaluation.reset(self._token)
            self._token = None
