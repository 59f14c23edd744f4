"""Configuration schema and loading for nrrem scenarios."""

from nrrem.config.schema import (
    AntennaConfig,
    AntennaElement,
    BandwidthPartConfig,
    BeamConfig,
    DeviceConfig,
    GridConfig,
    ModelConfig,
    Position,
    PropagationConfig,
    RemConfig,
    ScenarioConfig,
)
from nrrem.config.loader import ScenarioLoader, ScenarioLoadError, load_scenario

__all__ = [
    "AntennaConfig",
    "AntennaElement",
    "BandwidthPartConfig",
    "BeamConfig",
    "DeviceConfig",
    "GridConfig",
    "ModelConfig",
    "Position",
    "PropagationConfig",
    "RemConfig",
    "ScenarioConfig",
    "ScenarioLoadError",
    "ScenarioLoader",
    "load_scenario",
]
