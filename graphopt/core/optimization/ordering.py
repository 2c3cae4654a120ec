"""Variable elimination orderings."""

import logging
import numpy as np
from typing import Dict, Hashable, Iterable, Iterator, List, Set
from scipy.sparse import csr_matrix
from scipy.sparse.csgraph import reverse_cuthill_mckee

from ..exceptions import InvalidConfigurationError, InvalidOrderingError
from .values import Values

Key = Hashable

logger = logging.getLogger(__name__)


class Ordering:
    """Elimination sequence: a bijection between keys and positions."""

    def __init__(self, keys: Iterable[Key]):
        self._keys: List[Key] = list(keys)
        self._positions: Dict[Key, int] = {}
        for position, key in enumerate(self._keys):
            if key in self._positions:
                raise InvalidOrderingError(f"Key {key!r} appears more than once in ordering")
            self._positions[key] = position

    def keys(self) -> List[Key]:
        return list(self._keys)

    def index(self, key: Key) -> int:
        """Elimination position of ``key``."""
        return self._positions[key]

    def __getitem__(self, position: int) -> Key:
        return self._keys[position]

    def __contains__(self, key: Key) -> bool:
        return key in self._positions

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[Key]:
        return iter(self._keys)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Ordering):
            return NotImplemented
        return self._keys == other._keys

    def validate_against(self, keys: Iterable[Key]) -> None:
        """Raise InvalidOrderingError unless this ordering covers exactly ``keys``."""
        keys = set(keys)
        missing = keys - set(self._positions)
        extra = set(self._positions) - keys
        if missing or extra:
            raise InvalidOrderingError(
                f"Ordering is not a bijection over the estimate: "
                f"missing {sorted(map(repr, missing))}, unexpected {sorted(map(repr, extra))}"
            )

    def __repr__(self) -> str:
        return f"Ordering({self._keys})"


def _minimum_degree(keys: List[Key], adjacency: Dict[Key, Set[Key]]) -> List[Key]:
    """Greedy minimum degree elimination with explicit fill-in.

    Ties are broken by the position of the key in ``keys``.
    """
    position = {key: i for i, key in enumerate(keys)}
    graph = {key: set(neighbours) for key, neighbours in adjacency.items()}
    remaining = set(keys)
    order = []

    while remaining:
        key = min(remaining, key=lambda k: (len(graph[k]), position[k]))
        neighbours = graph.pop(key)
        for neighbour in neighbours:
            graph[neighbour].discard(key)
            graph[neighbour].update(n for n in neighbours if n != neighbour)
        remaining.remove(key)
        order.append(key)

    return order


def _reverse_cuthill_mckee(keys: List[Key], adjacency: Dict[Key, Set[Key]]) -> List[Key]:
    if not keys:
        return []
    index = {key: i for i, key in enumerate(keys)}
    rows = []
    cols = []
    for key, neighbours in adjacency.items():
        for neighbour in neighbours:
            rows.append(index[key])
            cols.append(index[neighbour])
    matrix = csr_matrix(
        (np.ones(len(rows)), (rows, cols)),
        shape=(len(keys), len(keys))
    )
    permutation = reverse_cuthill_mckee(matrix, symmetric_mode=True)
    return [keys[i] for i in permutation]


def compute_ordering(graph, values: Values, method: str = "amd") -> Ordering:
    """Compute an elimination ordering over the variables of ``values``.

    Args:
        graph: NonlinearFactorGraph whose factors define variable adjacency
        values: Estimate whose keys are ordered
        method: "amd" (approximate minimum degree, fill-reducing),
            "rcm" (reverse Cuthill-McKee) or "natural" (insertion order)

    Returns:
        Ordering over exactly the keys of ``values``
    """
    keys = values.keys()

    if method == "natural":
        graph.check_keys(values)
        return Ordering(keys)

    adjacency = graph.adjacency(keys)
    if method == "amd":
        order = _minimum_degree(keys, adjacency)
    elif method == "rcm":
        order = _reverse_cuthill_mckee(keys, adjacency)
    else:
        raise InvalidConfigurationError(f"Unknown ordering method: {method}")

    logger.debug(f"Computed {method} ordering over {len(order)} variables")
    return Ordering(order)
