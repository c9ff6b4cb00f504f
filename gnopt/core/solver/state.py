"""Immutable optimizer state and its update protocol."""

from dataclasses import dataclass
from typing import Optional

from ..models.config import OptimizerConfig
from ..optimization.factor_graph import NonlinearFactorGraph
from ..optimization.values import Values


@dataclass(frozen=True, eq=False)
class OptimizerState:
    """Snapshot of an optimization trajectory.

    ``graph``, ``values`` and ``config`` are shared by reference between
    states and are never modified. ``error`` is always the objective of
    ``graph`` at ``values``.

    Attributes:
        graph: Nonlinear factor graph being optimized
        values: Current variable assignment
        config: Optimizer configuration
        error: Total objective at ``values``
        iterations: Number of completed steps
    """

    graph: NonlinearFactorGraph
    values: Values
    config: OptimizerConfig
    error: float
    iterations: int = 0

    def __post_init__(self):
        """Freeze the wrapped graph so ``error`` cannot go stale."""
        self.graph.freeze()

    @classmethod
    def create(
        cls,
        graph: NonlinearFactorGraph,
        values: Values,
        config: Optional[OptimizerConfig] = None
    ) -> "OptimizerState":
        """Initial state wrapping caller-supplied graph, values and config.

        Raises:
            LinearizationFailure: If the objective is undefined at ``values``
        """
        config = config if config is not None else OptimizerConfig()
        return cls(graph, values, config, graph.error(values), 0)

    def update(
        self,
        graph: Optional[NonlinearFactorGraph] = None,
        values: Optional[Values] = None,
        config: Optional[OptimizerConfig] = None
    ) -> "OptimizerState":
        """Return a state with some of graph, values and config replaced.

        Omitted arguments keep this state's references. The iteration count
        is kept; the error is re-evaluated when graph or values change.
        """
        new_graph = graph if graph is not None else self.graph
        new_values = values if values is not None else self.values
        new_config = config if config is not None else self.config

        if graph is None and values is None:
            error = self.error
        else:
            error = new_graph.error(new_values)

        return OptimizerState(new_graph, new_values, new_config, error, self.iterations)

    def clone(self) -> "OptimizerState":
        """Independent handle on the same graph, values, config, error and iteration count."""
        return OptimizerState(self.graph, self.values, self.config, self.error, self.iterations)
