"""
Scene builder: turn a validated scenario configuration into REM engine inputs.

Stands in for the scenario-setup stage of a full system simulation. It
produces the transmitting devices, the receiver, the live propagation models
and the grid the engine consumes.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from nrrem.config.schema import DeviceConfig, ModelConfig, ScenarioConfig
from nrrem.rem.antenna import AntennaArray
from nrrem.rem.beamforming import RemMode
from nrrem.rem.device import BandwidthPart, RadioDevice
from nrrem.rem.engine import RemEngine
from nrrem.rem.grid import GridSpec
from nrrem.rem.propagation import (
    ChannelConditionModel,
    FastFadingModel,
    ModelFactory,
    PathlossModel,
    PropagationModel,
    PropagationModels,
)

logger = logging.getLogger(__name__)


@dataclass
class Scene:
    """Populated scene handed to the REM engine."""

    name: str
    transmitters: list[RadioDevice]
    receiver: RadioDevice
    models: PropagationModels
    grid: GridSpec


def build_device(name: str, config: DeviceConfig, bwp_id: int = 0) -> RadioDevice:
    """Build a RadioDevice on one of its bandwidth parts."""
    antenna = AntennaArray(
        num_rows=config.antenna.rows,
        num_columns=config.antenna.columns,
        element=config.antenna.element.value,
        bearing_deg=config.antenna.bearing_deg,
    )
    if config.antenna.beam is not None:
        antenna.steer_towards(
            math.radians(config.antenna.beam.azimuth_deg),
            math.radians(config.antenna.beam.zenith_deg),
        )

    bwp = config.bandwidth_parts[bwp_id]
    return RadioDevice(
        name=name,
        position=config.position.as_tuple(),
        antenna=antenna,
        tx_power_dbm=config.tx_power_dbm,
        bandwidth_part=BandwidthPart(
            frequency_hz=bwp.frequency_hz,
            bandwidth_hz=bwp.bandwidth_hz,
            numerology=bwp.numerology,
        ),
        noise_figure_db=config.noise_figure_db,
    )


def build_model(
    config: ModelConfig,
    kind: type[PropagationModel],
    rng: Optional[np.random.Generator] = None,
) -> PropagationModel:
    """
    Instantiate a live model from its configuration.

    Raises:
        ModelInstantiationError: If the type is unknown or the params are invalid
    """
    return ModelFactory(config.type, config.params, kind=kind).create(rng)


def build_scene(config: ScenarioConfig) -> Scene:
    """
    Build all engine inputs from a scenario configuration.

    Args:
        config: Validated scenario

    Returns:
        Scene with devices on the selected bandwidth part, live models and grid
    """
    bwp_id = config.rem.bwp_id
    transmitters = [
        build_device(name, config.transmitters[name], bwp_id)
        for name in config.selected_transmitters
    ]
    receiver = build_device("rrd", config.receiver, bwp_id)

    propagation = config.propagation
    models = PropagationModels(
        pathloss=build_model(propagation.pathloss, PathlossModel),
        fast_fading=build_model(propagation.fading, FastFadingModel),
        channel_condition=build_model(propagation.channel_condition, ChannelConditionModel),
    )

    grid = GridSpec(
        x_min=config.grid.x_min,
        x_max=config.grid.x_max,
        x_resolution=config.grid.x_resolution,
        y_min=config.grid.y_min,
        y_max=config.grid.y_max,
        y_resolution=config.grid.y_resolution,
        z=config.grid.z,
    )

    logger.info(
        "Built scene '%s': %d transmitters on BWP %d, models: %s / %s / %s",
        config.name,
        len(transmitters),
        bwp_id,
        propagation.pathloss.type,
        propagation.fading.type,
        propagation.channel_condition.type,
    )
    return Scene(
        name=config.name,
        transmitters=transmitters,
        receiver=receiver,
        models=models,
        grid=grid,
    )


def build_engine(
    config: ScenarioConfig,
    mode: Optional[RemMode] = None,
    iterations: Optional[int] = None,
    seed: Optional[int] = None,
) -> RemEngine:
    """
    Build a ready-to-run engine, optionally overriding REM settings.

    Args:
        config: Validated scenario
        mode: Override of rem.mode
        iterations: Override of rem.iterations
        seed: Override of rem.seed
    """
    scene = build_scene(config)
    return RemEngine(
        transmitters=scene.transmitters,
        receiver=scene.receiver,
        models=scene.models,
        grid=scene.grid,
        mode=mode if mode is not None else config.rem.mode,
        iterations=iterations if iterations is not None else config.rem.iterations,
        serving=config.rem.serving,
        seed=seed if seed is not None else config.rem.seed,
    )
