"""
Radio devices taking part in a REM: transmitters (RTDs) and the receiver (RRD).

Spectrum is modelled per resource block (RB):

    subcarrier spacing = 15 kHz * 2^numerology
    RB width           = 12 * subcarrier spacing
    number of RBs      = floor(bandwidth / RB width)

RB centres are placed symmetrically around the carrier frequency. A
transmitter spreads its power evenly over its RBs.
"""

import math
from dataclasses import dataclass, field, replace
from typing import Iterator

import numpy as np

from nrrem.rem.antenna import AntennaArray

SUBCARRIERS_PER_RB = 12
BASE_SUBCARRIER_SPACING_HZ = 15e3


@dataclass(frozen=True)
class BandwidthPart:
    """A contiguous slice of spectrum assigned to a radio link."""

    frequency_hz: float
    bandwidth_hz: float
    numerology: int = 0

    @property
    def subcarrier_spacing_hz(self) -> float:
        return BASE_SUBCARRIER_SPACING_HZ * 2**self.numerology

    @property
    def rb_width_hz(self) -> float:
        return SUBCARRIERS_PER_RB * self.subcarrier_spacing_hz


class SpectrumModel:
    """Ordered set of bands (one per resource block) with their centre frequencies."""

    def __init__(self, centers_hz: np.ndarray, band_width_hz: float):
        centers = np.asarray(centers_hz, dtype=float)
        if centers.ndim != 1 or centers.size == 0:
            raise ValueError("Spectrum model needs at least one band")
        if band_width_hz <= 0:
            raise ValueError(f"Band width must be positive, got {band_width_hz}")
        self.centers_hz = centers
        self.band_width_hz = float(band_width_hz)

    @classmethod
    def from_bandwidth_part(cls, bwp: BandwidthPart) -> "SpectrumModel":
        """Build the RB grid of a bandwidth part."""
        rb_width = bwp.rb_width_hz
        num_rbs = int(math.floor(bwp.bandwidth_hz / rb_width))
        if num_rbs < 1:
            raise ValueError(
                f"Bandwidth {bwp.bandwidth_hz / 1e6:.3f} MHz holds no resource block "
                f"at numerology {bwp.numerology}"
            )
        first = bwp.frequency_hz - (num_rbs * rb_width) / 2.0 + rb_width / 2.0
        return cls(first + rb_width * np.arange(num_rbs), rb_width)

    @property
    def num_bands(self) -> int:
        return int(self.centers_hz.size)

    @property
    def lower_edge_hz(self) -> float:
        return float(self.centers_hz[0] - self.band_width_hz / 2.0)

    @property
    def upper_edge_hz(self) -> float:
        return float(self.centers_hz[-1] + self.band_width_hz / 2.0)

    @property
    def total_bandwidth_hz(self) -> float:
        return self.num_bands * self.band_width_hz

    def occupancy(self, frequencies_hz: np.ndarray) -> np.ndarray:
        """Boolean mask of the given frequencies that fall inside this spectrum."""
        freqs = np.asarray(frequencies_hz, dtype=float)
        return (freqs >= self.lower_edge_hz) & (freqs <= self.upper_edge_hz)

    def subcarriers(self) -> Iterator[tuple[int, float]]:
        """Iterate over (band index, centre frequency) pairs."""
        for index, center in enumerate(self.centers_hz):
            yield index, float(center)

    def __len__(self) -> int:
        return self.num_bands


@dataclass
class RadioDevice:
    """
    One radio endpoint of the REM.

    Everything except the antenna orientation is fixed for the duration of a
    run; beamforming policies only touch ``antenna``.
    """

    name: str
    position: tuple[float, float, float]
    antenna: AntennaArray = field(default_factory=AntennaArray)
    tx_power_dbm: float = 0.0
    bandwidth_part: BandwidthPart = field(
        default_factory=lambda: BandwidthPart(frequency_hz=3.5e9, bandwidth_hz=20e6)
    )
    noise_figure_db: float = 5.0
    spectrum: SpectrumModel = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.position = tuple(float(c) for c in self.position)
        self.spectrum = SpectrumModel.from_bandwidth_part(self.bandwidth_part)

    @property
    def bandwidth_hz(self) -> float:
        return self.bandwidth_part.bandwidth_hz

    @property
    def frequency_hz(self) -> float:
        return self.bandwidth_part.frequency_hz

    @property
    def numerology(self) -> int:
        return self.bandwidth_part.numerology

    @property
    def tx_power_w(self) -> float:
        return 10 ** ((self.tx_power_dbm - 30.0) / 10.0)

    def tx_psd(self) -> float:
        """Transmit power spectral density in W/Hz over the allocated RBs."""
        return self.tx_power_w / self.spectrum.total_bandwidth_hz

    def at(self, position: tuple[float, float, float]) -> "RadioDevice":
        """Return a copy placed at another position with its own antenna."""
        return replace(self, position=position, antenna=self.antenna.copy())

    def copy(self) -> "RadioDevice":
        """Return an independent copy of this device."""
        return self.at(self.position)
