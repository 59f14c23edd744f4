"""
Unit tests for beamforming.py - REM mode policies.
"""

import math

import numpy as np
import pytest

from nrrem.rem.antenna import AntennaArray, direction_between
from nrrem.rem.beamforming import (
    BeamShapePolicy,
    CoverageAreaPolicy,
    RemMode,
    make_policy,
    point_antenna_towards,
)


@pytest.fixture
def arrays(make_device):
    """Two 2x4 transmitters and a 1x4 receiver."""
    gnb1 = make_device(name="gnb1", antenna=AntennaArray(num_rows=2, num_columns=4))
    gnb2 = make_device(
        name="gnb2", position=(300.0, 0.0, 25.0), antenna=AntennaArray(num_rows=2, num_columns=4)
    )
    rx = make_device(name="rrd", position=(50.0, 50.0, 1.5), antenna=AntennaArray(1, 4))
    return gnb1, gnb2, rx


class TestMakePolicy:
    def test_modes(self):
        assert isinstance(make_policy(RemMode.BEAM_SHAPE), BeamShapePolicy)
        assert isinstance(make_policy("coverage-area"), CoverageAreaPolicy)

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            make_policy("sweep")


class TestBeamShapePolicy:
    def test_leaves_antennas_untouched(self, arrays):
        gnb1, gnb2, rx = arrays
        gnb1.antenna.steer_towards(0.0, math.pi / 2)
        before = [d.antenna.weights for d in arrays]

        policy = BeamShapePolicy()
        policy.apply(rx.position, [gnb1, gnb2], rx)
        policy.prepare_link(rx, gnb1)

        for device, weights in zip(arrays, before):
            assert np.array_equal(device.antenna.weights, weights)


class TestCoverageAreaPolicy:
    def test_transmitters_point_at_rem_point(self, arrays):
        gnb1, gnb2, rx = arrays
        CoverageAreaPolicy().apply(rx.position, [gnb1, gnb2], rx)

        for tx in (gnb1, gnb2):
            azimuth, zenith = direction_between(tx.position, rx.position)
            assert tx.antenna.gain_linear(azimuth, zenith) == pytest.approx(8.0)

    def test_receiver_points_at_each_transmitter(self, arrays):
        gnb1, gnb2, rx = arrays
        policy = CoverageAreaPolicy()
        for tx in (gnb1, gnb2):
            policy.prepare_link(rx, tx)
            azimuth, zenith = direction_between(rx.position, tx.position)
            assert rx.antenna.gain_linear(azimuth, zenith) == pytest.approx(4.0)

    def test_idempotent(self, arrays):
        gnb1, gnb2, rx = arrays
        policy = CoverageAreaPolicy()
        policy.apply(rx.position, [gnb1, gnb2], rx)
        once = [gnb1.antenna.weights, gnb2.antenna.weights]
        policy.apply(rx.position, [gnb1, gnb2], rx)
        assert np.allclose(gnb1.antenna.weights, once[0])
        assert np.allclose(gnb2.antenna.weights, once[1])

    def test_order_independent(self, arrays):
        gnb1, gnb2, rx = arrays
        policy = CoverageAreaPolicy()
        policy.apply(rx.position, [gnb1, gnb2], rx)

        other1 = gnb1.copy()
        other2 = gnb2.copy()
        other1.antenna.set_quasi_omni()
        other2.antenna.set_quasi_omni()
        policy.apply(rx.position, [other2, other1], rx)

        assert np.allclose(other1.antenna.weights, gnb1.antenna.weights)
        assert np.allclose(other2.antenna.weights, gnb2.antenna.weights)

    def test_point_antenna_towards(self, make_device):
        device = make_device(antenna=AntennaArray(num_rows=4, num_columns=8))
        point_antenna_towards(device, (0.0, 100.0, 1.5))
        azimuth, zenith = device.antenna.beam
        assert azimuth == pytest.approx(math.pi / 2)
        assert zenith > math.pi / 2
