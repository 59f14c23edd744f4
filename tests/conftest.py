"""Pytest configuration and fixtures for nrrem tests."""

from pathlib import Path

import numpy as np
import pytest

from nrrem.rem.antenna import AntennaArray
from nrrem.rem.device import BandwidthPart, RadioDevice
from nrrem.rem.grid import GridSpec
from nrrem.rem.propagation import (
    AlwaysLosChannelConditionModel,
    ChannelConditionModel,
    FastFadingModel,
    FreeSpacePathlossModel,
    NoFadingModel,
    PropagationModels,
    link_key,
)


class UniformScalarFadingModel(FastFadingModel):
    """Flat fading: one uniform draw per link, identical on every band (mean (low+high)/2)."""

    type_name = "uniform-scalar"

    def __init__(self, low=0.5, high=1.5, rng=None):
        super().__init__(rng)
        self.low = low
        self.high = high
        self._gains = {}

    def get_attributes(self):
        return {"low": self.low, "high": self.high}

    def gains(self, tx, rx, frequencies_hz, condition):
        key = link_key(tx, rx)
        if key not in self._gains:
            self._gains[key] = self._rng.uniform(self.low, self.high)
        return np.full(len(frequencies_hz), self._gains[key])


class TrackingChannelConditionModel(AlwaysLosChannelConditionModel):
    """LOS model that records every instance ever created."""

    type_name = "tracking-los"
    instances: list = []

    def __init__(self, rng=None):
        super().__init__(rng)
        TrackingChannelConditionModel.instances.append(self)
        self.calls = 0

    def get_condition(self, tx, rx):
        self.calls += 1
        return super().get_condition(tx, rx)


class BrokenChannelConditionModel(ChannelConditionModel):
    """Model whose constructor rejects its attributes."""

    type_name = "broken"

    def __init__(self, rng=None):
        raise ValueError("cannot build")


class FailingFadingModel(FastFadingModel):
    """Unit fading that raises on the n-th call across all instances and records clears."""

    type_name = "failing"
    instances: list = []
    calls = 0
    fail_on = 2

    def __init__(self, rng=None):
        super().__init__(rng)
        FailingFadingModel.instances.append(self)
        self.cleared = False

    def gains(self, tx, rx, frequencies_hz, condition):
        FailingFadingModel.calls += 1
        if FailingFadingModel.calls == FailingFadingModel.fail_on:
            raise RuntimeError("fading failed")
        return np.ones(len(frequencies_hz))

    def clear(self):
        self.cleared = True


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def examples_dir(project_root: Path) -> Path:
    """Return the examples directory."""
    return project_root / "examples"


@pytest.fixture
def sample_scenario_path(examples_dir: Path) -> Path:
    """Return path to the sample scenario file."""
    return examples_dir / "three_sector" / "scenario.yaml"


@pytest.fixture
def bwp() -> BandwidthPart:
    """3.5 GHz, 20 MHz, numerology 0 (111 resource blocks)."""
    return BandwidthPart(frequency_hz=3.5e9, bandwidth_hz=20e6, numerology=0)


@pytest.fixture
def make_device(bwp):
    """Factory for radio devices on the default bandwidth part."""

    def _make(name="gnb1", position=(0.0, 0.0, 25.0), tx_power_dbm=43.0, antenna=None, **kwargs):
        return RadioDevice(
            name=name,
            position=position,
            antenna=antenna if antenna is not None else AntennaArray(),
            tx_power_dbm=tx_power_dbm,
            bandwidth_part=kwargs.pop("bandwidth_part", bwp),
            **kwargs,
        )

    return _make


@pytest.fixture
def receiver(make_device):
    """Quasi-omni isotropic receiver."""
    return make_device(name="rrd", position=(0.0, 0.0, 1.5), tx_power_dbm=23.0)


@pytest.fixture
def deterministic_models() -> PropagationModels:
    """Free-space pathloss, no fading, always LOS: no randomness at all."""
    return PropagationModels(
        pathloss=FreeSpacePathlossModel(),
        fast_fading=NoFadingModel(),
        channel_condition=AlwaysLosChannelConditionModel(),
    )


@pytest.fixture
def small_grid() -> GridSpec:
    """3x3 grid over [-100, 100] at 1.5 m."""
    return GridSpec(
        x_min=-100.0, x_max=100.0, x_resolution=2,
        y_min=-100.0, y_max=100.0, y_resolution=2,
        z=1.5,
    )


@pytest.fixture
def scenario_dict() -> dict:
    """Minimal valid scenario as parsed YAML."""
    return {
        "name": "unit-test",
        "grid": {
            "x_min": -100.0, "x_max": 100.0, "x_resolution": 2,
            "y_min": -100.0, "y_max": 100.0, "y_resolution": 2,
            "z": 1.5,
        },
        "rem": {"mode": "beam-shape", "iterations": 1, "seed": 1},
        "propagation": {
            "pathloss": {"type": "free-space"},
            "fading": {"type": "none"},
            "channel_condition": {"type": "always-los"},
        },
        "transmitters": {
            "gnb1": {"position": {"x": 0.0, "y": 0.0, "z": 25.0}, "tx_power_dbm": 43.0},
            "gnb2": {"position": {"x": 400.0, "y": 0.0, "z": 25.0}, "tx_power_dbm": 43.0},
        },
        "receiver": {"noise_figure_db": 5.0},
    }


@pytest.fixture
def uniform_fading_model():
    """Flat uniform(0.5, 1.5) fading: mean linear gain 1."""
    return UniformScalarFadingModel(low=0.5, high=1.5)


@pytest.fixture
def tracking_condition_model():
    """LOS model recording its instances; the record is reset per test."""
    TrackingChannelConditionModel.instances = []
    yield TrackingChannelConditionModel()
    TrackingChannelConditionModel.instances = []


@pytest.fixture
def broken_condition_cls():
    """Channel condition model type that always fails to build."""
    return BrokenChannelConditionModel


@pytest.fixture
def failing_fading_model():
    """Fading model failing on its second call; instance record reset per test."""
    FailingFadingModel.instances = []
    FailingFadingModel.calls = 0
    yield FailingFadingModel()
    FailingFadingModel.instances = []
    FailingFadingModel.calls = 0
