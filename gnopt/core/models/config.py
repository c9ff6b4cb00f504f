"""Optimizer configuration models."""

from enum import IntEnum
from typing import Dict, List, Literal, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..linear.elimination import Elimination, Factorization


class Verbosity(IntEnum):
    """How much the optimizer logs; each level includes the ones below it."""
    SILENT = 0
    ERROR = 1
    VALUES = 2
    DELTA = 3
    LINEAR = 4


class ConvergenceCriteria(BaseModel):
    """Stopping thresholds shared by every optimization strategy."""

    model_config = ConfigDict(frozen=True)

    relative_error_tol: float = Field(
        default=1e-5, ge=0, description="Stop when the relative error decrease falls below this"
    )
    absolute_error_tol: float = Field(
        default=1e-5, ge=0, description="Stop when the absolute error decrease falls below this"
    )
    error_tol: float = Field(default=0.0, ge=0, description="Stop when the total error falls below this")
    max_iterations: int = Field(default=100, ge=0, description="Maximum number of iterations")
    verbosity: Verbosity = Field(default=Verbosity.SILENT, description="Logging verbosity")

    @field_validator('verbosity', mode='before')
    @classmethod
    def validate_verbosity(cls, v):
        """Accept verbosity names such as "ERROR"."""
        if isinstance(v, str):
            try:
                return Verbosity[v.upper()]
            except KeyError:
                raise ValueError(f"Unknown verbosity: {v}")
        return v


class StrategyPolicy(BaseModel):
    """Strategy-specific settings, tagged by optimizer kind."""

    model_config = ConfigDict(frozen=True)

    kind: str = Field(description="Optimizer strategy identifier")

    def describe_lines(self) -> List[str]:
        return [f"optimizer: {self.kind}"]


class GaussNewtonPolicy(StrategyPolicy):
    """Gauss-Newton linear solve settings.

    An empty ``ordering`` means a fill-reducing ordering is computed for
    every linear solve. A non-empty one must list exactly the variables of
    the graph being optimized; that is checked at solve time.
    """

    kind: Literal["gauss_newton"] = "gauss_newton"
    elimination: Elimination = Field(
        default=Elimination.MULTIFRONTAL, description="Elimination algorithm"
    )
    factorization: Factorization = Field(
        default=Factorization.LDL, description="Numerical factorization"
    )
    ordering: Tuple[str, ...] = Field(
        default=(), description="Variable elimination ordering (empty: automatic)"
    )

    def describe_lines(self) -> List[str]:
        ordering = ", ".join(self.ordering) if self.ordering else "automatic (minimum degree)"
        return super().describe_lines() + [
            f"elimination method: {self.elimination.value}",
            f"factorization method: {self.factorization.value}",
            f"ordering: {ordering}",
        ]


POLICY_TYPES: Dict[str, Type[StrategyPolicy]] = {
    "gauss_newton": GaussNewtonPolicy,
}


class OptimizerConfig(BaseModel):
    """Complete optimizer configuration: convergence criteria plus strategy policy."""

    model_config = ConfigDict(frozen=True)

    criteria: ConvergenceCriteria = Field(default_factory=ConvergenceCriteria)
    policy: StrategyPolicy = Field(default_factory=GaussNewtonPolicy)

    @field_validator('policy', mode='before')
    @classmethod
    def validate_policy(cls, v):
        """Build the policy model matching ``kind`` from plain dictionaries."""
        if isinstance(v, dict):
            kind = v.get("kind", "gauss_newton")
            if kind not in POLICY_TYPES:
                raise ValueError(f"Unknown optimizer kind: {kind}")
            return POLICY_TYPES[kind](**v)
        return v

    @classmethod
    def gauss_newton(
        cls,
        elimination: Elimination = Elimination.MULTIFRONTAL,
        factorization: Factorization = Factorization.LDL,
        ordering: Tuple[str, ...] = (),
        **criteria
    ) -> "OptimizerConfig":
        """Gauss-Newton configuration; extra keyword arguments are convergence criteria."""
        return cls(
            criteria=ConvergenceCriteria(**criteria),
            policy=GaussNewtonPolicy(elimination=elimination, factorization=factorization, ordering=ordering),
        )

    def describe(self) -> str:
        """Human-readable summary of every setting."""
        criteria = self.criteria
        lines = [
            f"relative decrease threshold: {criteria.relative_error_tol:g}",
            f"absolute decrease threshold: {criteria.absolute_error_tol:g}",
            f"total error threshold: {criteria.error_tol:g}",
            f"maximum iterations: {criteria.max_iterations}",
            f"verbosity: {criteria.verbosity.name}",
        ] + self.policy.describe_lines()
        return "\n".join(lines)
