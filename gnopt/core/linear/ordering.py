"""Variable elimination orderings."""

import logging
from collections import Counter
from typing import Dict, List, Sequence, Set

import numpy as np
from scipy.sparse import csr_matrix

from ..errors import ConfigurationMismatch
from .factors import LinearFactorGraph

logger = logging.getLogger(__name__)


def variable_adjacency(graph: LinearFactorGraph) -> Dict[str, Set[str]]:
    """Variable adjacency induced by shared factors.

    Builds the factor/variable incidence pattern as a sparse matrix B and
    reads neighbors off the pattern of ``B^T B``.
    """
    keys = graph.keys()
    index = {key: i for i, key in enumerate(keys)}

    row_indices = []
    col_indices = []
    for row, factor in enumerate(graph):
        for key in factor.keys:
            row_indices.append(row)
            col_indices.append(index[key])

    incidence = csr_matrix(
        (np.ones(len(row_indices)), (row_indices, col_indices)),
        shape=(len(graph), len(keys))
    )
    pattern = (incidence.T @ incidence).tocoo()

    adjacency: Dict[str, Set[str]] = {key: set() for key in keys}
    for i, j in zip(pattern.row, pattern.col):
        if i != j:
            adjacency[keys[i]].add(keys[j])
    return adjacency


def minimum_degree_ordering(graph: LinearFactorGraph) -> List[str]:
    """Greedy minimum-degree fill-reducing ordering.

    Repeatedly eliminates the variable with the fewest remaining neighbors
    (ties go to the variable that appears first in the graph) and connects
    its neighbors into a clique.
    """
    adjacency = variable_adjacency(graph)
    first_seen = {key: i for i, key in enumerate(adjacency)}

    ordering = []
    while adjacency:
        key = min(adjacency, key=lambda k: (len(adjacency[k]), first_seen[k]))
        neighbors = adjacency.pop(key)
        for neighbor in neighbors:
            adjacency[neighbor].discard(key)
            adjacency[neighbor].update(neighbors - {neighbor})
        ordering.append(key)

    return ordering


def resolve_ordering(graph: LinearFactorGraph, ordering: Sequence[str] = ()) -> List[str]:
    """Validate an explicit ordering, or compute one when it is empty.

    Raises:
        ConfigurationMismatch: If a non-empty ordering is not a permutation of
            exactly the graph's variables.
    """
    if not ordering:
        computed = minimum_degree_ordering(graph)
        logger.debug(f"Computed minimum-degree ordering over {len(computed)} variables")
        return computed

    ordering = list(ordering)
    ordering_set = set(ordering)
    graph_keys = graph.keys()
    key_set = set(graph_keys)

    duplicates = [key for key, count in Counter(ordering).items() if count > 1]
    missing = [key for key in graph_keys if key not in ordering_set]
    extra = [key for key in dict.fromkeys(ordering) if key not in key_set]

    if duplicates or missing or extra:
        raise ConfigurationMismatch(missing=missing, extra=extra, duplicates=duplicates)

    return ordering
