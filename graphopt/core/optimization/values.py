"""Containers for variable estimates and linear update vectors."""

import numpy as np
from typing import Dict, Hashable, Iterable, Iterator, List, Mapping, Optional, Tuple

Key = Hashable


def _as_vector(key: Key, value) -> np.ndarray:
    vector = np.atleast_1d(np.array(value, dtype=float))
    if vector.ndim != 1:
        raise ValueError(f"Variable {key!r}: value must be a 1-D vector, got shape {vector.shape}")
    return vector


class Values:
    """Estimate: a mapping from variable key to its current value.

    Values are stored as 1-D float vectors in insertion order. Reads return
    copies and :meth:`retract` builds a new instance, so an estimate handed
    to an optimizer is never changed by it.
    """

    def __init__(self, values: Optional[Mapping[Key, np.ndarray]] = None):
        self._values: Dict[Key, np.ndarray] = {}
        if values is not None:
            for key, value in values.items():
                self.insert(key, value)

    def insert(self, key: Key, value) -> None:
        """Add a new variable.

        Raises:
            ValueError: if the key is already present
        """
        if key in self._values:
            raise ValueError(f"Variable {key!r} already exists")
        self._values[key] = _as_vector(key, value)

    def update(self, key: Key, value) -> None:
        """Replace the value of an existing variable, keeping its dimension."""
        if key not in self._values:
            raise KeyError(key)
        vector = _as_vector(key, value)
        if len(vector) != len(self._values[key]):
            raise ValueError(
                f"Variable {key!r}: new value size {len(vector)} != expected size {len(self._values[key])}"
            )
        self._values[key] = vector

    def at(self, key: Key) -> np.ndarray:
        """Get a copy of the value stored for ``key``."""
        return self._values[key].copy()

    __getitem__ = at

    def __contains__(self, key: Key) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Key]:
        return iter(self._values)

    def keys(self) -> List[Key]:
        return list(self._values)

    def items(self) -> Iterable[Tuple[Key, np.ndarray]]:
        return ((key, value.copy()) for key, value in self._values.items())

    def dim(self, key: Key) -> int:
        return len(self._values[key])

    def dims(self) -> Dict[Key, int]:
        return {key: len(value) for key, value in self._values.items()}

    def total_dim(self) -> int:
        return sum(len(value) for value in self._values.values())

    def view(self) -> Dict[Key, np.ndarray]:
        """Read-only arrays keyed by variable, for residual evaluation without copies."""
        view = {}
        for key, value in self._values.items():
            array = value.view()
            array.flags.writeable = False
            view[key] = array
        return view

    def retract(self, delta: "VectorValues") -> "Values":
        """Apply a linear update, returning a new estimate.

        Variables missing from ``delta`` keep their current value.
        """
        result = Values()
        for key, value in self._values.items():
            if key in delta:
                step = delta[key]
                if len(step) != len(value):
                    raise ValueError(
                        f"Variable {key!r}: update size {len(step)} != variable size {len(value)}"
                    )
                result._values[key] = value + step
            else:
                result._values[key] = value.copy()
        return result

    def copy(self) -> "Values":
        return Values(self._values)

    def equals(self, other: "Values", tol: float = 1e-9) -> bool:
        """Same keys and values equal within ``tol``."""
        if set(self._values) != set(other.keys()):
            return False
        return all(
            self._values[key].shape == other.at(key).shape
            and np.allclose(self._values[key], other.at(key), atol=tol, rtol=0.0)
            for key in self._values
        )

    def to_dict(self) -> Dict[Key, List[float]]:
        return {key: value.tolist() for key, value in self._values.items()}

    def __repr__(self) -> str:
        entries = ", ".join(f"{key!r}: {value.tolist()}" for key, value in self._values.items())
        return f"Values({{{entries}}})"


class VectorValues:
    """Update vector of a linear solve, one block per variable."""

    def __init__(self, blocks: Optional[Mapping[Key, np.ndarray]] = None):
        self._blocks: Dict[Key, np.ndarray] = {}
        if blocks is not None:
            for key, block in blocks.items():
                self._blocks[key] = _as_vector(key, block)

    @classmethod
    def zero(cls, dims: Mapping[Key, int]) -> "VectorValues":
        return cls({key: np.zeros(dim) for key, dim in dims.items()})

    @classmethod
    def from_vector(cls, vector: np.ndarray, keys: List[Key], dims: Mapping[Key, int]) -> "VectorValues":
        """Split a stacked vector into blocks following ``keys``."""
        blocks = {}
        offset = 0
        for key in keys:
            end = offset + dims[key]
            if end > len(vector):
                raise ValueError(f"Not enough entries for variable {key!r}")
            blocks[key] = vector[offset:end]
            offset = end
        if offset != len(vector):
            raise ValueError(f"Vector size mismatch: {offset} vs {len(vector)}")
        return cls(blocks)

    def vector(self, keys: Optional[List[Key]] = None) -> np.ndarray:
        """Stack blocks in the order of ``keys`` (insertion order by default)."""
        keys = list(self._blocks) if keys is None else keys
        if not keys:
            return np.zeros(0)
        return np.concatenate([self._blocks[key] for key in keys])

    def __getitem__(self, key: Key) -> np.ndarray:
        return self._blocks[key]

    def __setitem__(self, key: Key, block) -> None:
        self._blocks[key] = _as_vector(key, block)

    def __contains__(self, key: Key) -> bool:
        return key in self._blocks

    def __len__(self) -> int:
        return len(self._blocks)

    def __iter__(self) -> Iterator[Key]:
        return iter(self._blocks)

    def keys(self) -> List[Key]:
        return list(self._blocks)

    def norm(self) -> float:
        return float(np.linalg.norm(self.vector()))

    def __repr__(self) -> str:
        entries = ", ".join(f"{key!r}: {block.tolist()}" for key, block in self._blocks.items())
        return f"VectorValues({{{entries}}})"
