"""Failure taxonomy for optimization steps."""

from typing import List, Optional, Sequence

import numpy as np


class OptimizerError(Exception):
    """Base class for failures raised while taking an optimization step.

    Attributes:
        phase: Step phase that failed ("linearize", "order", "eliminate", "retract")
        key: Variable identifier involved in the failure, if known
    """

    phase = "optimize"

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class ConfigurationMismatch(OptimizerError, ValueError):
    """Explicit ordering does not cover exactly the graph's variables."""

    phase = "order"

    def __init__(
        self,
        missing: Sequence[str] = (),
        extra: Sequence[str] = (),
        duplicates: Sequence[str] = (),
    ):
        self.missing: List[str] = list(missing)
        self.extra: List[str] = list(extra)
        self.duplicates: List[str] = list(duplicates)

        parts = []
        if self.missing:
            parts.append(f"missing {self.missing}")
        if self.extra:
            parts.append(f"unknown {self.extra}")
        if self.duplicates:
            parts.append(f"duplicated {self.duplicates}")

        key = (self.missing or self.extra or self.duplicates or [None])[0]
        super().__init__(f"Ordering does not match graph variables: {', '.join(parts)}", key)


class LinearizationFailure(OptimizerError):
    """A factor's residual or Jacobian is undefined at the current estimate."""

    phase = "linearize"

    def __init__(self, message: str, factor_id: str, key: Optional[str] = None):
        super().__init__(f"Factor {factor_id}: {message}", key)
        self.factor_id = factor_id


class SingularSystem(OptimizerError, np.linalg.LinAlgError):
    """A local elimination block cannot be factored."""

    phase = "eliminate"


class RetractionFailure(OptimizerError, ValueError):
    """A correction cannot be applied to the current values."""

    phase = "retract"
