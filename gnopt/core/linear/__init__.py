"""Linear factor graphs and their elimination."""

from .factors import JacobianFactor, HessianFactor, LinearFactorGraph
from .conditionals import GaussianConditional, GaussianBayesNet, GaussianBayesTree, BayesTreeClique
from .ordering import minimum_degree_ordering, resolve_ordering
from .elimination import Elimination, Factorization, eliminate

__all__ = [
    "JacobianFactor",
    "HessianFactor",
    "LinearFactorGraph",
    "GaussianConditional",
    "GaussianBayesNet",
    "GaussianBayesTree",
    "BayesTreeClique",
    "minimum_degree_ordering",
    "resolve_ordering",
    "Elimination",
    "Factorization",
    "eliminate",
]
