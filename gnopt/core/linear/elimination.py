"""Sequential and multifrontal elimination of linear factor graphs."""

import logging
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.linalg import ldl, solve_triangular

from ..errors import SingularSystem
from .conditionals import BayesTreeClique, GaussianBayesNet, GaussianBayesTree, GaussianConditional
from .factors import HessianFactor, JacobianFactor, LinearFactorGraph
from .ordering import resolve_ordering, variable_adjacency

logger = logging.getLogger(__name__)

DEFAULT_RANK_TOLERANCE = 1e-9


class Elimination(str, Enum):
    """Elimination algorithm."""
    MULTIFRONTAL = "MULTIFRONTAL"
    SEQUENTIAL = "SEQUENTIAL"


class Factorization(str, Enum):
    """Numerical factorization applied to each eliminated block."""
    LDL = "LDL"
    QR = "QR"


def _key_at(frontals: Sequence[str], dims: Mapping[str, int], index: int) -> str:
    """Frontal variable owning column ``index`` of the stacked frontal block."""
    offset = 0
    for key in frontals:
        offset += dims[key]
        if index < offset:
            return key
    return frontals[-1]


def reference_scales(graph: LinearFactorGraph) -> Dict[str, float]:
    """Largest information diagonal entry of each variable before elimination.

    Singularity of a pivot is judged against this, so round-off left in a
    Schur complement is not mistaken for information.
    """
    diagonals: Dict[str, np.ndarray] = {}
    for factor in graph:
        factor_dims = factor.dims()
        if isinstance(factor, JacobianFactor):
            contributions = {key: np.sum(block ** 2, axis=0) for key, block in factor.blocks.items()}
        else:
            diagonal = np.diag(factor.info)
            contributions = {}
            offset = 0
            for key in factor.keys:
                contributions[key] = diagonal[offset:offset + factor_dims[key]]
                offset += factor_dims[key]

        for key, contribution in contributions.items():
            diagonals[key] = diagonals.get(key, 0.0) + contribution

    return {key: float(np.max(np.abs(diagonal))) for key, diagonal in diagonals.items()}


def _column_scales(frontals: Sequence[str], dims: Mapping[str, int], reference: Mapping[str, float]) -> np.ndarray:
    """Reference information of every column of the stacked frontal block."""
    return np.concatenate([np.full(dims[key], reference[key]) for key in frontals])


def eliminate_frontals(
    factors: Sequence[Union[JacobianFactor, HessianFactor]],
    frontals: Sequence[str],
    dims: Mapping[str, int],
    position: Mapping[str, int],
    factorization: Factorization = Factorization.LDL,
    rank_tolerance: float = DEFAULT_RANK_TOLERANCE,
    reference: Optional[Mapping[str, float]] = None
) -> Tuple[GaussianConditional, Optional[Union[JacobianFactor, HessianFactor]]]:
    """Eliminate ``frontals`` from the product of ``factors``.

    Args:
        factors: All factors involving any of the frontal variables
        frontals: Variables to eliminate jointly, in elimination order
        dims: Tangent dimension of every variable
        position: Elimination position of every variable
        factorization: LDL or QR
        rank_tolerance: Relative threshold below which a pivot is singular
        reference: Largest information diagonal entry of each variable before
            any elimination; each pivot is judged relative to its variable's
            entry. Defaults to the diagonal of the local frontal block.

    Returns:
        Tuple of (conditional on the separator, remaining factor on the
        separator or None when nothing remains)

    Raises:
        SingularSystem: If the frontal block cannot be factored
    """
    frontals = list(frontals)
    if not factors:
        raise SingularSystem(f"Variable {frontals[0]} is not constrained by any factor", frontals[0])

    frontal_set = set(frontals)
    separator = sorted(
        {key for factor in factors for key in factor.keys if key not in frontal_set},
        key=position.__getitem__
    )

    offsets: Dict[str, int] = {}
    n = 0
    for key in frontals + separator:
        offsets[key] = n
        n += dims[key]
    nf = sum(dims[key] for key in frontals)

    if Factorization(factorization) is Factorization.QR:
        return _eliminate_qr(factors, frontals, separator, dims, offsets, n, nf, rank_tolerance, reference)
    return _eliminate_ldl(factors, frontals, separator, dims, offsets, n, nf, rank_tolerance, reference)


def _eliminate_qr(factors, frontals, separator, dims, offsets, n, nf, rank_tolerance, reference):
    rows = []
    for factor in factors:
        if not isinstance(factor, JacobianFactor):
            raise TypeError(f"QR elimination requires Jacobian factors, got {type(factor).__name__}")
        rows.append(factor.augmented(offsets, dims, n))
    M = np.vstack(rows)

    R = np.linalg.qr(M, mode="r")

    diagonal = np.abs(np.diag(R[:, :nf]))
    if reference is None:
        scale = np.sum(M[:, :nf] ** 2, axis=0)
    else:
        scale = _column_scales(frontals, dims, reference)
    # R entries scale with the square root of the information
    small = np.flatnonzero(diagonal <= rank_tolerance * np.sqrt(scale[:diagonal.size]))
    if small.size:
        bad_index = int(small[0])
    elif R.shape[0] < nf:
        bad_index = R.shape[0]
    else:
        bad_index = None

    if bad_index is not None:
        key = _key_at(frontals, dims, bad_index)
        raise SingularSystem(f"QR block for {frontals} is rank deficient at variable {key}", key)

    parents = {key: R[:nf, offsets[key]:offsets[key] + dims[key]] for key in separator}
    conditional = GaussianConditional(frontals, dims, R[:nf, :nf], parents, R[:nf, n])

    remaining = None
    if separator and R.shape[0] > nf:
        rest = R[nf:]
        blocks = {key: rest[:, offsets[key]:offsets[key] + dims[key]] for key in separator}
        remaining = JacobianFactor(separator, blocks, rest[:, n])

    return conditional, remaining


def _eliminate_ldl(factors, frontals, separator, dims, offsets, n, nf, rank_tolerance, reference):
    info = np.zeros((n + 1, n + 1))
    for factor in factors:
        info += factor.information(offsets, dims, n)

    H_ff = info[:nf, :nf]
    lu, D, perm = ldl(H_ff, lower=True)
    pivots = np.diag(D)

    # 2x2 pivot blocks only appear for indefinite blocks
    two_by_two = np.flatnonzero(np.diag(D, -1))
    if reference is None:
        scale = np.abs(np.diag(H_ff))
    else:
        scale = _column_scales(frontals, dims, reference)
    # pivot i belongs to column perm[i]
    small = np.flatnonzero(pivots <= rank_tolerance * scale[perm])
    bad = np.concatenate([two_by_two, small])
    if bad.size:
        key = _key_at(frontals, dims, int(perm[int(np.min(bad))]))
        raise SingularSystem(f"LDL block for {frontals} is not positive definite at variable {key}", key)

    L = lu[perm]
    R = np.sqrt(pivots)[:, None] * L.T
    d = solve_triangular(R.T, info[:nf, n][perm], lower=True)
    if separator:
        S = solve_triangular(R.T, info[:nf, nf:n][perm], lower=True)
    else:
        S = np.zeros((nf, 0))

    parents = {key: S[:, offsets[key] - nf:offsets[key] - nf + dims[key]] for key in separator}
    conditional = GaussianConditional(frontals, dims, R, parents, d, permutation=perm)

    remaining = None
    if separator:
        schur = np.empty((n - nf + 1, n - nf + 1))
        H_ss = info[nf:n, nf:n] - S.T @ S
        schur[:-1, :-1] = 0.5 * (H_ss + H_ss.T)
        schur[:-1, -1] = schur[-1, :-1] = info[nf:n, n] - S.T @ d
        schur[-1, -1] = info[n, n] - d @ d
        remaining = HessianFactor(separator, dims, schur)

    return conditional, remaining


def eliminate_sequential(
    graph: LinearFactorGraph,
    ordering: Sequence[str],
    factorization: Factorization = Factorization.LDL,
    rank_tolerance: float = DEFAULT_RANK_TOLERANCE
) -> GaussianBayesNet:
    """Eliminate one variable at a time into a chain of conditionals."""
    dims = graph.dims()
    reference = reference_scales(graph)
    position = {key: i for i, key in enumerate(ordering)}

    pool = list(graph)
    conditionals = []
    for key in ordering:
        involved = [factor for factor in pool if key in factor.keys]
        pool = [factor for factor in pool if key not in factor.keys]

        conditional, remaining = eliminate_frontals(
            involved, [key], dims, position, factorization, rank_tolerance, reference
        )
        conditionals.append(conditional)
        if remaining is not None:
            pool.append(remaining)

    return GaussianBayesNet(conditionals)


def symbolic_elimination(
    graph: LinearFactorGraph,
    ordering: Sequence[str]
) -> Tuple[Dict[str, Optional[str]], Dict[str, List[str]]]:
    """Elimination tree of ``graph`` under ``ordering``.

    Returns:
        Tuple of (parent of each variable, separator of each variable with
        fill-in), separators sorted by elimination position
    """
    position = {key: i for i, key in enumerate(ordering)}
    adjacency = variable_adjacency(graph)

    parents: Dict[str, Optional[str]] = {}
    separators: Dict[str, List[str]] = {}
    for key in ordering:
        separator = sorted(
            (k for k in adjacency[key] if position[k] > position[key]),
            key=position.__getitem__
        )
        for k in separator:
            adjacency[k].update(s for s in separator if s != k)

        separators[key] = separator
        parents[key] = separator[0] if separator else None

    return parents, separators


def build_cliques(
    ordering: Sequence[str],
    parents: Mapping[str, Optional[str]],
    separators: Mapping[str, List[str]]
) -> List[BayesTreeClique]:
    """Group elimination-tree nodes into cliques (fundamental supernodes).

    A variable joins the clique of its child when that child is its only
    child and the child's separator is the variable plus its own separator.
    The returned list is in post-order: children before parents.
    """
    children: Dict[str, List[str]] = {key: [] for key in ordering}
    for key in ordering:
        if parents[key] is not None:
            children[parents[key]].append(key)

    clique_of: Dict[str, BayesTreeClique] = {}
    cliques: List[BayesTreeClique] = []
    for key in ordering:
        kids = children[key]
        if len(kids) == 1 and len(separators[kids[0]]) == len(separators[key]) + 1:
            clique = clique_of[kids[0]]
            clique.frontals.append(key)
            clique.separator = list(separators[key])
        else:
            clique = BayesTreeClique([key], separators[key])
            for kid in kids:
                child = clique_of[kid]
                child.parent = clique
                clique.children.append(child)
            cliques.append(clique)
        clique_of[key] = clique

    return cliques


def eliminate_multifrontal(
    graph: LinearFactorGraph,
    ordering: Sequence[str],
    factorization: Factorization = Factorization.LDL,
    rank_tolerance: float = DEFAULT_RANK_TOLERANCE
) -> GaussianBayesTree:
    """Eliminate cliques of variables frontally into a Bayes tree."""
    dims = graph.dims()
    reference = reference_scales(graph)
    position = {key: i for i, key in enumerate(ordering)}

    parents, separators = symbolic_elimination(graph, ordering)
    cliques = build_cliques(ordering, parents, separators)

    clique_of = {key: clique for clique in cliques for key in clique.frontals}
    pending: Dict[BayesTreeClique, List] = {clique: [] for clique in cliques}
    for factor in graph:
        first = min(factor.keys, key=position.__getitem__)
        pending[clique_of[first]].append(factor)

    for clique in cliques:
        conditional, remaining = eliminate_frontals(
            pending[clique], clique.frontals, dims, position, factorization, rank_tolerance, reference
        )
        clique.conditional = conditional
        if remaining is not None:
            pending[clique.parent].append(remaining)

    return GaussianBayesTree(cliques)


def eliminate(
    graph: LinearFactorGraph,
    ordering: Sequence[str] = (),
    elimination: Elimination = Elimination.MULTIFRONTAL,
    factorization: Factorization = Factorization.LDL,
    rank_tolerance: float = DEFAULT_RANK_TOLERANCE
) -> Tuple[Dict[str, np.ndarray], Union[GaussianBayesNet, GaussianBayesTree]]:
    """Solve a linear factor graph by elimination.

    Args:
        graph: Linear factor graph to solve
        ordering: Elimination ordering; empty computes a minimum-degree one
        elimination: SEQUENTIAL (Bayes net) or MULTIFRONTAL (Bayes tree)
        factorization: LDL or QR
        rank_tolerance: Relative threshold below which a pivot is singular

    Returns:
        Tuple of (correction per variable, elimination structure)

    Raises:
        ConfigurationMismatch: If ``ordering`` does not match the graph
        SingularSystem: If an eliminated block cannot be factored
    """
    ordering = resolve_ordering(graph, ordering)
    elimination = Elimination(elimination)
    factorization = Factorization(factorization)

    if elimination is Elimination.SEQUENTIAL:
        structure = eliminate_sequential(graph, ordering, factorization, rank_tolerance)
    else:
        structure = eliminate_multifrontal(graph, ordering, factorization, rank_tolerance)

    logger.debug(
        f"{elimination.value} {factorization.value} elimination of {len(ordering)} variables "
        f"produced {len(structure)} conditionals"
    )
    return structure.optimize(), structure
