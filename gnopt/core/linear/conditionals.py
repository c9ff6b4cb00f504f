"""Gaussian conditionals and the elimination structures built from them."""

from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
from scipy.linalg import solve_triangular


class GaussianConditional:
    """Conditional density ``R y + sum_k S_k x_k = d`` over frontal variables.

    ``y`` is the stacked frontal vector with its entries permuted by
    ``permutation`` (``x_frontal[permutation] = y``); QR elimination leaves
    the permutation as identity, LDL elimination records its pivoting.

    Args:
        frontals: Frontal variable IDs, in elimination order
        dims: Tangent dimension of every frontal and parent variable
        R: Upper-triangular frontal matrix
        parents: Mapping from separator variable ID to its S block
        d: Right-hand side
        permutation: Pivot permutation of the stacked frontal vector
    """

    def __init__(
        self,
        frontals: Sequence[str],
        dims: Mapping[str, int],
        R: np.ndarray,
        parents: Mapping[str, np.ndarray],
        d: np.ndarray,
        permutation: Optional[np.ndarray] = None
    ):
        self.frontals: List[str] = list(frontals)
        self.parents: Dict[str, np.ndarray] = dict(parents)
        self.dims: Dict[str, int] = {k: dims[k] for k in self.frontals + list(self.parents)}
        self.R = R
        self.d = d
        self.permutation = permutation

    def solve(self, solution: Mapping[str, np.ndarray]) -> Dict[str, np.ndarray]:
        """Back-substitute given already-solved parent values.

        Args:
            solution: Values for (at least) all parent variables

        Returns:
            Values for the frontal variables
        """
        rhs = self.d.copy()
        for key, S in self.parents.items():
            rhs -= S @ solution[key]

        y = solve_triangular(self.R, rhs, lower=False)
        if self.permutation is None:
            x = y
        else:
            x = np.empty_like(y)
            x[self.permutation] = y

        result = {}
        offset = 0
        for key in self.frontals:
            dim = self.dims[key]
            result[key] = x[offset:offset + dim]
            offset += dim
        return result

    def __repr__(self) -> str:
        return f"GaussianConditional(frontals={self.frontals}, parents={list(self.parents)})"


class GaussianBayesNet:
    """Chain of conditionals produced by sequential elimination."""

    def __init__(self, conditionals: Optional[Sequence[GaussianConditional]] = None):
        self.conditionals: List[GaussianConditional] = list(conditionals or [])

    def __len__(self) -> int:
        return len(self.conditionals)

    def optimize(self) -> Dict[str, np.ndarray]:
        """Back-substitute in reverse elimination order."""
        solution: Dict[str, np.ndarray] = {}
        for conditional in reversed(self.conditionals):
            solution.update(conditional.solve(solution))
        return solution


class BayesTreeClique:
    """Clique of jointly eliminated variables in a Bayes tree."""

    def __init__(self, frontals: Sequence[str], separator: Sequence[str]):
        self.frontals: List[str] = list(frontals)
        self.separator: List[str] = list(separator)
        self.conditional: Optional[GaussianConditional] = None
        self.parent: Optional["BayesTreeClique"] = None
        self.children: List["BayesTreeClique"] = []

    def __repr__(self) -> str:
        return f"BayesTreeClique(frontals={self.frontals}, separator={self.separator})"


class GaussianBayesTree:
    """Tree of clique conditionals produced by multifrontal elimination."""

    def __init__(self, cliques: Sequence[BayesTreeClique]):
        self.cliques: List[BayesTreeClique] = list(cliques)

    @property
    def roots(self) -> List[BayesTreeClique]:
        return [clique for clique in self.cliques if clique.parent is None]

    def __len__(self) -> int:
        return len(self.cliques)

    def optimize(self) -> Dict[str, np.ndarray]:
        """Back-substitute from the roots down to the leaves.

        Sibling subtrees only read their ancestors' solutions, so each
        subtree can be solved independently once its root's parents are known.
        """
        solution: Dict[str, np.ndarray] = {}
        stack = list(reversed(self.roots))
        while stack:
            clique = stack.pop()
            solution.update(clique.conditional.solve(solution))
            stack.extend(reversed(clique.children))
        return solution
