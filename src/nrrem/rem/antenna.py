"""
Uniform planar antenna array with beam steering.

The array lies in the local y-z plane and faces the local +x axis. The local
frame is rotated about z by the bearing angle, so a global azimuth phi maps to
the local azimuth phi - bearing. Elements are spaced half a wavelength apart.

Gain toward a direction (theta, phi) for beamforming weights w:

    G(theta, phi) = G_elem(theta, phi) * |w^H a(theta, phi)|^2

where a is the array response. Steering toward (theta0, phi0) uses
w = a(theta0, phi0) / sqrt(N), which yields an array gain of N on boresight.
The quasi-omni configuration activates a single element (array gain 1).

Element patterns:
- "iso": isotropic, 0 dBi
- "tr38901": 3GPP TR 38.901 Table 7.3-1 element (8 dBi, 65 deg beamwidth,
  30 dB front-back ratio)
"""

import copy
import math
from typing import Final, Optional

import numpy as np

ELEMENT_MAX_GAIN_DBI: Final[dict[str, float]] = {
    "iso": 0.0,
    "tr38901": 8.0,
}

TR38901_BEAMWIDTH_DEG = 65.0
TR38901_MAX_ATTENUATION_DB = 30.0


def wrap_angle(angle_rad: float) -> float:
    """Wrap an angle to [-pi, pi)."""
    return (angle_rad + math.pi) % (2 * math.pi) - math.pi


def tr38901_element_gain_db(azimuth_rad: float, zenith_rad: float) -> float:
    """
    3GPP TR 38.901 single element gain in the element's local frame.

    Args:
        azimuth_rad: Local azimuth (0 = boresight)
        zenith_rad: Local zenith (pi/2 = horizon)

    Returns:
        Element gain in dBi
    """
    phi_deg = math.degrees(wrap_angle(azimuth_rad))
    theta_deg = math.degrees(zenith_rad)
    a_v = -min(12 * ((theta_deg - 90.0) / TR38901_BEAMWIDTH_DEG) ** 2, TR38901_MAX_ATTENUATION_DB)
    a_h = -min(12 * (phi_deg / TR38901_BEAMWIDTH_DEG) ** 2, TR38901_MAX_ATTENUATION_DB)
    attenuation = -min(-(a_v + a_h), TR38901_MAX_ATTENUATION_DB)
    return ELEMENT_MAX_GAIN_DBI["tr38901"] + attenuation


class AntennaArray:
    """Planar antenna array whose orientation is its beamforming vector."""

    def __init__(
        self,
        num_rows: int = 1,
        num_columns: int = 1,
        element: str = "iso",
        bearing_deg: float = 0.0,
        element_spacing: float = 0.5,
    ):
        """
        Initialize antenna array with a quasi-omni beamforming vector.

        Args:
            num_rows: Number of element rows (z axis)
            num_columns: Number of element columns (y axis)
            element: Element pattern name ("iso", "tr38901")
            bearing_deg: Array bearing (rotation about z) in degrees
            element_spacing: Element spacing in wavelengths
        """
        if num_rows < 1 or num_columns < 1:
            raise ValueError(
                f"Antenna array needs at least one row and column, got {num_rows}x{num_columns}"
            )
        if element not in ELEMENT_MAX_GAIN_DBI:
            valid = ", ".join(ELEMENT_MAX_GAIN_DBI.keys())
            raise ValueError(f"Unknown antenna element: '{element}'. Valid elements: {valid}")

        self.num_rows = num_rows
        self.num_columns = num_columns
        self.element = element
        self.bearing_rad = math.radians(bearing_deg)
        self.element_spacing = element_spacing

        rows, cols = np.meshgrid(np.arange(num_rows), np.arange(num_columns), indexing="ij")
        self._y = (cols.flatten() * element_spacing).astype(float)
        self._z = (rows.flatten() * element_spacing).astype(float)

        self._weights: np.ndarray = np.zeros(self.num_elements, dtype=complex)
        self.beam: Optional[tuple[float, float]] = None
        self.set_quasi_omni()

    @property
    def num_elements(self) -> int:
        """Number of antenna elements."""
        return self.num_rows * self.num_columns

    @property
    def weights(self) -> np.ndarray:
        """Copy of the current beamforming vector."""
        return self._weights.copy()

    def _local_azimuth(self, azimuth_rad: float) -> float:
        return wrap_angle(azimuth_rad - self.bearing_rad)

    def array_response(self, azimuth_rad: float, zenith_rad: float) -> np.ndarray:
        """Array response vector toward a global direction."""
        phi = self._local_azimuth(azimuth_rad)
        phase = 2 * np.pi * (
            self._y * math.sin(zenith_rad) * math.sin(phi) + self._z * math.cos(zenith_rad)
        )
        return np.exp(1j * phase)

    def set_quasi_omni(self) -> None:
        """Activate a single element so the array radiates with the element pattern."""
        weights = np.zeros(self.num_elements, dtype=complex)
        weights[0] = 1.0
        self._weights = weights
        self.beam = None

    def steer_towards(self, azimuth_rad: float, zenith_rad: float) -> None:
        """
        Point the beam boresight toward a global direction.

        Args:
            azimuth_rad: Global azimuth of the target
            zenith_rad: Global zenith of the target
        """
        self._weights = self.array_response(azimuth_rad, zenith_rad) / math.sqrt(
            self.num_elements
        )
        self.beam = (azimuth_rad, zenith_rad)

    def element_gain_db(self, azimuth_rad: float, zenith_rad: float) -> float:
        """Element gain in dBi toward a global direction."""
        if self.element == "tr38901":
            return tr38901_element_gain_db(self._local_azimuth(azimuth_rad), zenith_rad)
        return ELEMENT_MAX_GAIN_DBI[self.element]

    def gain_linear(self, azimuth_rad: float, zenith_rad: float) -> float:
        """Total antenna gain (element times array factor) as a linear power ratio."""
        array_factor = abs(np.vdot(self._weights, self.array_response(azimuth_rad, zenith_rad))) ** 2
        return 10 ** (self.element_gain_db(azimuth_rad, zenith_rad) / 10.0) * float(array_factor)

    def gain_db(self, azimuth_rad: float, zenith_rad: float) -> float:
        """Total antenna gain in dBi toward a global direction."""
        gain = self.gain_linear(azimuth_rad, zenith_rad)
        if gain <= 0:
            return -math.inf
        return 10 * math.log10(gain)

    def copy(self) -> "AntennaArray":
        """Return an independent copy (weights included)."""
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        return (
            f"AntennaArray({self.num_rows}x{self.num_columns}, element={self.element}, "
            f"bearing={math.degrees(self.bearing_rad):.1f} deg)"
        )


def direction_between(
    source: tuple[float, float, float], target: tuple[float, float, float]
) -> tuple[float, float]:
    """
    Azimuth and zenith (radians) of target as seen from source.

    Coincident positions return (0, pi/2), i.e. the horizon along +x.
    """
    dx = target[0] - source[0]
    dy = target[1] - source[1]
    dz = target[2] - source[2]
    distance = math.sqrt(dx * dx + dy * dy + dz * dz)
    if distance == 0:
        return 0.0, math.pi / 2
    azimuth = math.atan2(dy, dx)
    zenith = math.acos(max(-1.0, min(1.0, dz / distance)))
    return azimuth, zenith
