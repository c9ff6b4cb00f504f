"""Tests for nonlinear factor graph functionality."""

import numpy as np
import pytest

from gnopt.core.errors import LinearizationFailure
from gnopt.core.math.rotations import so3_exp
from gnopt.core.optimization.factor_graph import NonlinearFactorGraph
from gnopt.core.optimization.residuals import BetweenFactor, FunctionFactor, PriorFactor
from gnopt.core.optimization.values import Values, VariableType


class TestFactors:
    """Test residual factors."""

    def test_prior_error_is_whitened(self):
        """Test error of a prior with sigma."""
        factor = PriorFactor("prior_x", "x", [0.0, 0.0], sigma=2.0)
        values = Values.from_dict({"x": [1.0, 2.0]})

        # r / sigma = [0.5, 1.0]
        assert factor.error(values) == pytest.approx(0.625)

    def test_prior_linearization(self):
        """Test whitened Jacobian factor of a prior."""
        factor = PriorFactor("prior_x", "x", [5.0], sigma=0.5)
        linear = factor.linearize(Values.from_dict({"x": [1.0]}))

        assert linear.keys == ["x"]
        assert linear.factor_id == "prior_x"
        np.testing.assert_allclose(linear.blocks["x"], [[2.0]])
        np.testing.assert_allclose(linear.b, [8.0])

    def test_between_residual(self):
        """Test vector between factor."""
        factor = BetweenFactor("odom", "a", "b", [1.0, 0.0])
        values = Values.from_dict({"a": [0.0, 0.0], "b": [1.5, 0.5]})

        np.testing.assert_allclose(factor.whitened_residual(values), [0.5, 0.5])

        linear = factor.linearize(values)
        np.testing.assert_allclose(linear.blocks["a"], -np.eye(2))
        np.testing.assert_allclose(linear.blocks["b"], np.eye(2))

    def test_rot2_between_wraps(self):
        """Test angle residuals are wrapped."""
        factor = BetweenFactor("turn", "t0", "t1", [0.1], VariableType.ROT2)
        values = Values().insert("t0", 3.0, VariableType.ROT2).insert("t1", -3.0, VariableType.ROT2)

        # -3.0 - 3.0 wraps to 2*pi - 6
        expected = (2 * np.pi - 6.0) - 0.1
        np.testing.assert_allclose(factor.whitened_residual(values), [expected], atol=1e-12)

    def test_rot3_prior_numerical_jacobian(self):
        """Test numerical Jacobian through the SO(3) retraction."""
        R = so3_exp(np.array([0.2, -0.3, 0.5]))
        factor = PriorFactor("prior_R", "R", R, VariableType.ROT3)
        values = Values().insert("R", R, VariableType.ROT3)

        linear = factor.linearize(values)

        np.testing.assert_allclose(linear.blocks["R"], np.eye(3), atol=1e-6)
        np.testing.assert_allclose(linear.b, np.zeros(3), atol=1e-12)

    def test_function_factor_numerical_jacobian(self):
        """Test finite-difference Jacobian of a range residual."""
        factor = FunctionFactor("range", ["p"], lambda v: [np.linalg.norm(v["p"]) - 5.0], 1)
        values = Values.from_dict({"p": [3.0, 4.0]})

        jacobians = factor.compute_jacobian(values)

        np.testing.assert_allclose(jacobians["p"], [[0.6, 0.8]], atol=1e-6)

    def test_function_factor_analytic_jacobian(self):
        """Test user-supplied Jacobian is used."""
        factor = FunctionFactor(
            "scale",
            ["x"],
            lambda v: 3.0 * v["x"],
            2,
            jacobian_fn=lambda v: {"x": 3.0 * np.eye(2)},
        )
        linear = factor.linearize(Values.from_dict({"x": [1.0, -1.0]}))

        np.testing.assert_allclose(linear.blocks["x"], 3.0 * np.eye(2))

    def test_invalid_factor_arguments(self):
        """Test factor construction validation."""
        with pytest.raises(ValueError):
            PriorFactor("p", "x", [0.0], sigma=0.0)

        with pytest.raises(ValueError):
            BetweenFactor("b", "x", "x", [0.0])


class TestLinearizationFailures:
    """Test that undefined residuals are surfaced."""

    def test_non_finite_residual(self):
        """Test NaN residual raises."""
        factor = FunctionFactor("bad", ["x"], lambda v: [np.nan], 1)

        with pytest.raises(LinearizationFailure) as exc_info:
            factor.linearize(Values.from_dict({"x": [0.0]}))

        assert exc_info.value.factor_id == "bad"
        assert exc_info.value.phase == "linearize"

    def test_arithmetic_error(self):
        """Test exceptions from the residual are wrapped."""
        factor = FunctionFactor("inverse", ["x"], lambda v: [1.0 / float(v["x"][0])], 1)

        with pytest.raises(LinearizationFailure) as exc_info:
            factor.error(Values.from_dict({"x": [0.0]}))

        assert isinstance(exc_info.value.__cause__, ZeroDivisionError)

    def test_missing_variable(self):
        """Test factor referencing a variable without a value."""
        factor = PriorFactor("prior_y", "y", [0.0])

        with pytest.raises(LinearizationFailure) as exc_info:
            factor.linearize(Values.from_dict({"x": [0.0]}))

        assert exc_info.value.key == "y"

    def test_wrong_residual_dimension(self):
        """Test residual size is checked."""
        factor = FunctionFactor("short", ["x"], lambda v: [0.0], 2)

        with pytest.raises(LinearizationFailure):
            factor.error(Values.from_dict({"x": [0.0]}))

    def test_lookup_error_in_residual(self):
        """Test indexing errors from the residual are wrapped."""
        factor = FunctionFactor("index", ["x"], lambda v: [v["x"][3]], 1)

        with pytest.raises(LinearizationFailure) as exc_info:
            factor.error(Values.from_dict({"x": [0.0, 1.0]}))

        assert isinstance(exc_info.value.__cause__, IndexError)
        assert exc_info.value.factor_id == "index"

    def test_lookup_error_in_jacobian(self):
        """Test errors from a user Jacobian are wrapped."""
        factor = FunctionFactor(
            "lookup",
            ["x"],
            lambda v: v["x"],
            1,
            jacobian_fn=lambda v: {"x": np.eye(1), "y": v["y"]},
        )

        with pytest.raises(LinearizationFailure) as exc_info:
            factor.linearize(Values.from_dict({"x": [0.0]}))

        assert isinstance(exc_info.value.__cause__, KeyError)


class TestNonlinearFactorGraph:
    """Test NonlinearFactorGraph class."""

    def make_graph(self):
        graph = NonlinearFactorGraph()
        graph.add_factor(PriorFactor("prior_a", "a", [0.0]))
        graph.add_factor(BetweenFactor("ab", "a", "b", [1.0]))
        graph.add_factor(BetweenFactor("bc", "b", "c", [1.0], sigma=0.5))
        return graph

    def test_factor_bookkeeping(self):
        """Test adding and retrieving factors."""
        graph = self.make_graph()

        assert len(graph) == 3
        assert graph.get_factor_ids() == ["prior_a", "ab", "bc"]
        assert graph.keys() == ["a", "b", "c"]
        assert graph.get_factor("ab").variable_ids == ["a", "b"]

        with pytest.raises(ValueError):
            graph.add_factor(PriorFactor("prior_a", "a", [1.0]))

        with pytest.raises(ValueError):
            graph.get_factor("missing")

    def test_error_sums_factors(self):
        """Test total error."""
        graph = self.make_graph()
        values = Values.from_dict({"a": [1.0], "b": [1.0], "c": [3.0]})

        # 0.5 * (1^2 + 1^2 + (1 / 0.5)^2)
        assert graph.error(values) == pytest.approx(3.0)

    def test_linearize(self):
        """Test linearization produces one Jacobian factor per factor."""
        graph = self.make_graph()
        values = Values.from_dict({"a": [0.0], "b": [1.0], "c": [2.0]})

        linear = graph.linearize(values)

        assert len(linear) == 3
        assert linear.keys() == ["a", "b", "c"]
        assert linear.dims() == {"a": 1, "b": 1, "c": 1}
        assert linear.error({"a": np.zeros(1), "b": np.zeros(1), "c": np.zeros(1)}) == pytest.approx(0.0)

    def test_summary(self):
        """Test graph summary."""
        summary = self.make_graph().summary()

        assert summary["variables"] == 3
        assert summary["factors"]["total"] == 3
        assert summary["factors"]["by_type"] == {"PriorFactor": 1, "BetweenFactor": 2}

    def test_copy_and_freeze(self):
        """Test frozen graphs reject new factors but copies do not."""
        graph = self.make_graph()
        graph.freeze()

        assert graph.frozen
        with pytest.raises(ValueError):
            graph.add_factor(PriorFactor("prior_c", "c", [0.0]))

        copy = graph.copy()
        copy.add_factor(PriorFactor("prior_c", "c", [0.0]))

        assert not copy.frozen
        assert len(copy) == 4
        assert len(graph) == 3
        assert copy.get_factor("ab") is graph.get_factor("ab")
