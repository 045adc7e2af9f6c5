"""
Parameter surfaces over (time to expiry, tenor).

Provides:
- SwaptionNodeMetadata: expiry/tenor identity of a surface node
- GridInterpolator: linear interpolation in tenor within each expiry
  column, then linear in expiry, with flat extrapolation
- InterpolatedNodalSurface: node-based surface used for calibrated SABR
  parameters
- ConstantSurface: single-parameter surface for user-supplied beta/shift

Every surface reports the weight of each node in an interpolated value
(z_value_parameter_sensitivity), which is how point sensitivities are
mapped onto node sensitivities. Surfaces are immutable; with_parameter and
with_perturbation return new instances.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

# (index, value, metadata) -> new value
Perturbation = Callable[[int, float, "SwaptionNodeMetadata"], float]


@dataclass(frozen=True)
class SwaptionNodeMetadata:
    """
    Identity of one surface node.

    Attributes:
        expiry: Time to expiry (years)
        tenor: Underlying swap tenor (years)
        label: Human-readable label, e.g. "1Y x 5Y"
    """
    expiry: float
    tenor: float
    label: str = ""

    @classmethod
    def of(cls, expiry: float, tenor: float, label: Optional[str] = None) -> "SwaptionNodeMetadata":
        if label is None:
            label = f"[{expiry:.4f}, {tenor:.4f}]"
        return cls(float(expiry), float(tenor), label)


def linear_weights(grid: np.ndarray, x: float) -> Tuple[int, int, float, float]:
    """
    Bracketing indices and weights of x on a sorted grid.

    Flat extrapolation outside the grid. A single-point grid returns
    full weight on that point.

    Returns:
        (i0, i1, w0, w1) with value = w0 * v[i0] + w1 * v[i1]
    """
    n = len(grid)
    if n == 1 or x <= grid[0]:
        return 0, 0, 1.0, 0.0
    if x >= grid[-1]:
        return n - 1, n - 1, 1.0, 0.0
    idx = int(np.searchsorted(grid, x, side='right')) - 1
    idx = max(0, min(idx, n - 2))
    x0, x1 = grid[idx], grid[idx + 1]
    w = (x - x0) / (x1 - x0)
    return idx, idx + 1, 1.0 - w, w


class GridInterpolator:
    """
    Two-step linear interpolation on nodes grouped by expiry.

    Nodes need not form a complete grid: each distinct expiry carries its
    own set of tenors.
    """

    def __init__(self, x: np.ndarray, y: np.ndarray):
        self.x = np.asarray(x, dtype=float)
        self.y = np.asarray(y, dtype=float)
        self._x_values = np.unique(self.x)
        self._columns: List[Tuple[np.ndarray, np.ndarray]] = []
        for xv in self._x_values:
            idx = np.flatnonzero(self.x == xv)
            order = np.argsort(self.y[idx], kind="stable")
            self._columns.append((self.y[idx][order], idx[order]))

    def weights(self, x: float, y: float) -> np.ndarray:
        """Weight of every node in the interpolated value at (x, y)."""
        w = np.zeros(len(self.x))
        i0, i1, a0, a1 = linear_weights(self._x_values, x)
        for col, a in ((i0, a0), (i1, a1)):
            if a == 0.0:
                continue
            ys, node_idx = self._columns[col]
            j0, j1, b0, b1 = linear_weights(ys, y)
            w[node_idx[j0]] += a * b0
            w[node_idx[j1]] += a * b1
        return w


class ParameterSurface(ABC):
    """A named surface of one model parameter."""

    def __init__(self, name: str, value_type: str):
        self.name = name
        self.value_type = value_type

    @property
    @abstractmethod
    def parameter_count(self) -> int:
        pass

    @abstractmethod
    def parameter(self, index: int) -> float:
        pass

    @abstractmethod
    def parameter_metadata(self, index: int) -> SwaptionNodeMetadata:
        pass

    @abstractmethod
    def z_value(self, x: float, y: float) -> float:
        """Surface value at (time to expiry, tenor)."""
        pass

    @abstractmethod
    def z_value_parameter_sensitivity(self, x: float, y: float) -> np.ndarray:
        """d z_value / d parameter, one entry per parameter."""
        pass

    @abstractmethod
    def with_parameter(self, index: int, value: float) -> "ParameterSurface":
        pass

    def with_perturbation(self, perturbation: Perturbation) -> "ParameterSurface":
        """Apply a function to every parameter, returning a new surface."""
        surface = self
        for i in range(self.parameter_count):
            new_value = perturbation(i, self.parameter(i), self.parameter_metadata(i))
            surface = surface.with_parameter(i, new_value)
        return surface

    @property
    def parameter_metadata_list(self) -> Tuple[SwaptionNodeMetadata, ...]:
        return tuple(self.parameter_metadata(i) for i in range(self.parameter_count))

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.parameter_count:
            raise IndexError(f"Parameter index {index} out of range for {self.parameter_count} parameters")


class InterpolatedNodalSurface(ParameterSurface):
    """
    Surface defined by values at (expiry, tenor) nodes.

    Nodes are stored sorted by expiry then tenor; this order is the
    indexing convention of parameters and sensitivities.

    Args:
        name: Surface name
        value_type: Parameter kind, e.g. "SabrAlpha"
        x: Times to expiry
        y: Tenors (years)
        z: Node values
        metadata: Node metadata (defaults built from x, y)
    """

    def __init__(
        self,
        name: str,
        value_type: str,
        x: Sequence[float],
        y: Sequence[float],
        z: Sequence[float],
        metadata: Optional[Sequence[SwaptionNodeMetadata]] = None
    ):
        super().__init__(name, value_type)
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        z = np.asarray(z, dtype=float)
        if not (x.shape == y.shape == z.shape) or x.ndim != 1:
            raise ValueError(f"x, y, z must be 1-D of equal length, got {x.shape}, {y.shape}, {z.shape}")
        if len(x) == 0:
            raise ValueError("Surface requires at least one node")
        if metadata is None:
            metadata = [SwaptionNodeMetadata.of(xi, yi) for xi, yi in zip(x, y)]
        if len(metadata) != len(x):
            raise ValueError(f"Expected {len(x)} metadata entries, got {len(metadata)}")

        order = np.lexsort((y, x))
        x, y, z = x[order], y[order], z[order]
        keys = list(zip(x, y))
        if len(set(keys)) != len(keys):
            raise ValueError(f"Duplicate surface nodes in {name}")

        for arr in (x, y, z):
            arr.setflags(write=False)
        self.x = x
        self.y = y
        self.z = z
        self.metadata: Tuple[SwaptionNodeMetadata, ...] = tuple(metadata[i] for i in order)
        self._interpolator = GridInterpolator(x, y)

    @property
    def parameter_count(self) -> int:
        return len(self.z)

    def parameter(self, index: int) -> float:
        self._check_index(index)
        return float(self.z[index])

    def parameter_metadata(self, index: int) -> SwaptionNodeMetadata:
        self._check_index(index)
        return self.metadata[index]

    def z_value(self, x: float, y: float) -> float:
        return float(self._interpolator.weights(x, y) @ self.z)

    def z_value_parameter_sensitivity(self, x: float, y: float) -> np.ndarray:
        return self._interpolator.weights(x, y)

    def with_parameter(self, index: int, value: float) -> "InterpolatedNodalSurface":
        self._check_index(index)
        z = self.z.copy()
        z[index] = value
        return InterpolatedNodalSurface(self.name, self.value_type, self.x, self.y, z, self.metadata)

    def with_values(self, z: Sequence[float]) -> "InterpolatedNodalSurface":
        """Same nodes, new values (in node order)."""
        return InterpolatedNodalSurface(self.name, self.value_type, self.x, self.y, z, self.metadata)

    def __repr__(self) -> str:
        return f"InterpolatedNodalSurface(name={self.name!r}, nodes={self.parameter_count})"


class ConstantSurface(ParameterSurface):
    """Surface with the same value everywhere (one parameter)."""

    def __init__(self, name: str, value_type: str, value: float):
        super().__init__(name, value_type)
        self.value = float(value)

    @property
    def parameter_count(self) -> int:
        return 1

    def parameter(self, index: int) -> float:
        self._check_index(index)
        return self.value

    def parameter_metadata(self, index: int) -> SwaptionNodeMetadata:
        self._check_index(index)
        return SwaptionNodeMetadata(0.0, 0.0, self.name)

    def z_value(self, x: float, y: float) -> float:
        return self.value

    def z_value_parameter_sensitivity(self, x: float, y: float) -> np.ndarray:
        return np.ones(1)

    def with_parameter(self, index: int, value: float) -> "ConstantSurface":
        self._check_index(index)
        return ConstantSurface(self.name, self.value_type, value)

    def __repr__(self) -> str:
        return f"ConstantSurface(name={self.name!r}, value={self.value})"


__all__ = [
    "SwaptionNodeMetadata",
    "GridInterpolator",
    "ParameterSurface",
    "InterpolatedNodalSurface",
    "ConstantSurface",
    "linear_weights",
]
