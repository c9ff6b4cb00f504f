"""Tests for linear factors and elimination orderings."""

import numpy as np
import pytest

from gnopt.core.errors import ConfigurationMismatch
from gnopt.core.linear.factors import HessianFactor, JacobianFactor, LinearFactorGraph
from gnopt.core.linear.ordering import minimum_degree_ordering, resolve_ordering, variable_adjacency


def unary(key, a=1.0, b=0.0, dim=1):
    return JacobianFactor([key], {key: a * np.eye(dim)}, np.full(dim, b))


def binary(key1, key2, b=0.0, dim=1):
    return JacobianFactor([key1, key2], {key1: -np.eye(dim), key2: np.eye(dim)}, np.full(dim, b))


def star_graph():
    """Center c connected to leaves l1, l2, l3."""
    return LinearFactorGraph([unary("c"), binary("c", "l1"), binary("c", "l2"), binary("c", "l3")])


class TestLinearFactors:
    """Test Jacobian and Hessian factors."""

    def test_jacobian_factor_error(self):
        """Test error of a Jacobian factor."""
        factor = JacobianFactor(
            ["x", "y"],
            {"x": np.array([[1.0, 0.0], [0.0, 2.0]]), "y": np.array([[1.0], [1.0]])},
            np.array([1.0, 1.0]),
        )
        delta = {"x": np.array([1.0, 1.0]), "y": np.array([1.0])}

        # A delta - b = [1, 2]
        np.testing.assert_allclose(factor.whitened_error_vector(delta), [1.0, 2.0])
        assert factor.error(delta) == pytest.approx(2.5)
        assert factor.rows == 2
        assert factor.dims() == {"x": 2, "y": 1}

    def test_block_row_mismatch(self):
        """Test blocks must match the right-hand side."""
        with pytest.raises(ValueError):
            JacobianFactor(["x"], {"x": np.eye(2)}, np.zeros(3))

    def test_hessian_matches_jacobian(self):
        """Test information form reproduces the Jacobian error."""
        rng = np.random.default_rng(7)
        A = {"x": rng.normal(size=(4, 2)), "y": rng.normal(size=(4, 3))}
        b = rng.normal(size=4)
        jacobian = JacobianFactor(["x", "y"], A, b)

        offsets = {"x": 0, "y": 2}
        dims = {"x": 2, "y": 3}
        hessian = HessianFactor(["x", "y"], dims, jacobian.information(offsets, dims, 5))

        for _ in range(3):
            delta = {"x": rng.normal(size=2), "y": rng.normal(size=3)}
            assert hessian.error(delta) == pytest.approx(jacobian.error(delta))

    def test_hessian_shape_checked(self):
        """Test information matrix size validation."""
        with pytest.raises(ValueError):
            HessianFactor(["x"], {"x": 2}, np.eye(2))

    def test_graph_dims_consistency(self):
        """Test conflicting variable dimensions are rejected."""
        graph = LinearFactorGraph([unary("x", dim=2), unary("x", dim=3)])

        with pytest.raises(ValueError):
            graph.dims()

    def test_dense_jacobian(self):
        """Test dense system assembly in a given column order."""
        graph = LinearFactorGraph([unary("x", a=2.0, b=1.0), binary("x", "y", b=3.0)])

        A, b = graph.jacobian(["y", "x"])

        np.testing.assert_allclose(A, [[0.0, 2.0], [1.0, -1.0]])
        np.testing.assert_allclose(b, [1.0, 3.0])

    def test_summary(self):
        """Test linear system statistics."""
        summary = star_graph().summary()

        assert summary == {"factors": 4, "variables": 4, "total_dimension": 4, "total_rows": 4}


class TestOrdering:
    """Test ordering computation and validation."""

    def test_adjacency(self):
        """Test neighbors come from shared factors."""
        adjacency = variable_adjacency(star_graph())

        assert adjacency["c"] == {"l1", "l2", "l3"}
        assert adjacency["l1"] == {"c"}

    def test_minimum_degree_star(self):
        """Test leaves are eliminated before the center."""
        assert minimum_degree_ordering(star_graph()) == ["l1", "l2", "c", "l3"]

    def test_minimum_degree_is_permutation(self):
        """Test computed ordering covers every variable once."""
        graph = LinearFactorGraph([
            unary("a"), binary("a", "b"), binary("b", "c"), binary("c", "d"), binary("d", "a"), binary("b", "d")
        ])

        ordering = minimum_degree_ordering(graph)

        assert sorted(ordering) == ["a", "b", "c", "d"]

    def test_resolve_empty_computes(self):
        """Test empty ordering means automatic."""
        assert resolve_ordering(star_graph()) == ["l1", "l2", "c", "l3"]
        assert resolve_ordering(star_graph(), []) == ["l1", "l2", "c", "l3"]

    def test_resolve_explicit(self):
        """Test valid explicit ordering is kept."""
        assert resolve_ordering(star_graph(), ("l3", "c", "l1", "l2")) == ["l3", "c", "l1", "l2"]

    def test_resolve_missing(self):
        """Test ordering missing a variable."""
        with pytest.raises(ConfigurationMismatch) as exc_info:
            resolve_ordering(star_graph(), ["c", "l1", "l2"])

        assert exc_info.value.missing == ["l3"]
        assert exc_info.value.key == "l3"
        assert exc_info.value.phase == "order"

    def test_resolve_extra(self):
        """Test ordering naming an unknown variable."""
        with pytest.raises(ConfigurationMismatch) as exc_info:
            resolve_ordering(star_graph(), ["c", "l1", "l2", "l3", "z"])

        assert exc_info.value.extra == ["z"]
        assert exc_info.value.missing == []

    def test_resolve_duplicate(self):
        """Test ordering naming a variable twice."""
        with pytest.raises(ConfigurationMismatch) as exc_info:
            resolve_ordering(star_graph(), ["c", "l1", "l1", "l2", "l3"])

        assert exc_info.value.duplicates == ["l1"]

    def test_mismatch_is_value_error(self):
        """Test mismatch can be handled as a ValueError."""
        with pytest.raises(ValueError):
            resolve_ordering(star_graph(), ["c"])
