"""
Beamforming policies applied before every REM sample.

BEAM_SHAPE leaves every antenna as configured by the scene, which shows the
coverage of a fixed, deployed beam configuration.

COVERAGE_AREA steers every transmitter toward the REM point and, before each
transmitter's contribution is computed, steers the receiver toward that
transmitter. It shows the best coverage the deployment can offer.
"""

import logging
from enum import Enum

from nrrem.rem.antenna import direction_between
from nrrem.rem.device import RadioDevice

logger = logging.getLogger(__name__)


class RemMode(str, Enum):
    """Type of map to generate."""

    BEAM_SHAPE = "beam-shape"
    COVERAGE_AREA = "coverage-area"


def point_antenna_towards(device: RadioDevice, target: tuple[float, float, float]) -> None:
    """Steer a device's boresight toward a target position."""
    azimuth, zenith = direction_between(device.position, target)
    device.antenna.steer_towards(azimuth, zenith)


class BeamformingPolicy:
    """Strategy deciding antenna orientations for each sample."""

    mode: RemMode

    def apply(
        self,
        point: tuple[float, float, float],
        transmitters: list[RadioDevice],
        receiver: RadioDevice,
    ) -> None:
        """Configure transmitter orientations for a sample at ``point``."""
        raise NotImplementedError

    def prepare_link(self, receiver: RadioDevice, transmitter: RadioDevice) -> None:
        """Configure the receiver before computing one transmitter's contribution."""
        raise NotImplementedError


class BeamShapePolicy(BeamformingPolicy):
    """Keep the scene's beamforming configuration untouched."""

    mode = RemMode.BEAM_SHAPE

    def apply(self, point, transmitters, receiver):
        pass

    def prepare_link(self, receiver, transmitter):
        pass


class CoverageAreaPolicy(BeamformingPolicy):
    """Align transmitter and receiver beams on every direct path."""

    mode = RemMode.COVERAGE_AREA

    def apply(self, point, transmitters, receiver):
        for transmitter in transmitters:
            point_antenna_towards(transmitter, point)

    def prepare_link(self, receiver, transmitter):
        point_antenna_towards(receiver, transmitter.position)


def make_policy(mode: RemMode) -> BeamformingPolicy:
    """Return the policy implementing a REM mode."""
    mode = RemMode(mode)
    if mode == RemMode.BEAM_SHAPE:
        return BeamShapePolicy()
    return CoverageAreaPolicy()
