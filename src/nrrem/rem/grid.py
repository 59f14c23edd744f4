"""
REM grid sampling.

A GridSpec describes a rectangle at a fixed height. Points are produced in
x-major order (outer loop over x, inner loop over y):

    x_step = (x_max - x_min) / x_resolution
    y_step = (y_max - y_min) / y_resolution

With a resolution R >= 2 the axis carries R + 1 values from min to max
(inclusive). A resolution of 1 collapses the axis to its minimum.
"""

import numbers
from dataclasses import dataclass
from typing import Iterator

from nrrem.rem.errors import InvalidGridSpec


@dataclass
class RemPoint:
    """A REM sample location and its averaged SNR/SINR values."""

    position: tuple[float, float, float]
    avg_snr_db: float = 0.0
    avg_sinr_db: float = 0.0


@dataclass(frozen=True)
class GridSpec:
    """Bounds, resolution and height of a REM grid."""

    x_min: float
    x_max: float
    x_resolution: int
    y_min: float
    y_max: float
    y_resolution: int
    z: float = 1.5

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """
        Check bounds and resolutions.

        Raises:
            InvalidGridSpec: If a resolution is not a positive integer or max <= min
        """
        for axis, resolution in (("x", self.x_resolution), ("y", self.y_resolution)):
            integral = isinstance(resolution, numbers.Integral) and not isinstance(
                resolution, bool
            )
            if not integral or resolution < 1:
                raise InvalidGridSpec(
                    f"{axis} resolution must be a positive integer, got {resolution}"
                )
        if self.x_max <= self.x_min:
            raise InvalidGridSpec(
                f"x_max ({self.x_max}) must be greater than x_min ({self.x_min})"
            )
        if self.y_max <= self.y_min:
            raise InvalidGridSpec(
                f"y_max ({self.y_max}) must be greater than y_min ({self.y_min})"
            )

    @property
    def x_step(self) -> float:
        """Distance along x between adjacent points."""
        return (self.x_max - self.x_min) / self.x_resolution

    @property
    def y_step(self) -> float:
        """Distance along y between adjacent points."""
        return (self.y_max - self.y_min) / self.y_resolution

    def x_values(self) -> list[float]:
        """Return the x coordinates of the grid."""
        return _axis_values(self.x_min, self.x_max, self.x_resolution)

    def y_values(self) -> list[float]:
        """Return the y coordinates of the grid."""
        return _axis_values(self.y_min, self.y_max, self.y_resolution)

    @property
    def num_points(self) -> int:
        """Number of points the grid produces."""
        return len(self.x_values()) * len(self.y_values())


def _axis_values(minimum: float, maximum: float, resolution: int) -> list[float]:
    if resolution == 1:
        return [minimum]
    step = (maximum - minimum) / resolution
    # Last value pinned to max
    return [minimum + i * step for i in range(resolution)] + [maximum]


def generate_points(spec: GridSpec) -> Iterator[RemPoint]:
    """
    Lazily yield the REM points of a grid in x-major order.

    The generator has no side effects; calling it again restarts the sequence.

    Args:
        spec: Grid specification

    Yields:
        Fresh RemPoint objects with zeroed averages

    Raises:
        InvalidGridSpec: If the spec is invalid
    """
    spec.validate()
    y_values = spec.y_values()
    for x in spec.x_values():
        for y in y_values:
            yield RemPoint(position=(x, y, spec.z))


class GridSampler:
    """Produce the ordered REM points of a GridSpec."""

    def __init__(self, spec: GridSpec):
        spec.validate()
        self.spec = spec

    def __iter__(self) -> Iterator[RemPoint]:
        return generate_points(self.spec)

    def __len__(self) -> int:
        return self.spec.num_points
