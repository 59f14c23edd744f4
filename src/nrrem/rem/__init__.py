"""Radio Environment Map (REM) generation engine."""

from nrrem.rem.antenna import AntennaArray
from nrrem.rem.beamforming import (
    BeamformingPolicy,
    BeamShapePolicy,
    CoverageAreaPolicy,
    RemMode,
    make_policy,
)
from nrrem.rem.device import BandwidthPart, RadioDevice, SpectrumModel
from nrrem.rem.engine import RemEngine, RemState, generate_rem
from nrrem.rem.errors import (
    EvaluationError,
    InvalidGridSpec,
    ModelInstantiationError,
    RemConfigurationError,
    RemError,
)
from nrrem.rem.grid import GridSampler, GridSpec, RemPoint, generate_points
from nrrem.rem.propagation import ModelFactory, PropagationModels
from nrrem.rem.session import PropagationSession
from nrrem.rem.sinr import SinrEvaluator, SinrSample

__all__ = [
    "AntennaArray",
    "BandwidthPart",
    "BeamformingPolicy",
    "BeamShapePolicy",
    "CoverageAreaPolicy",
    "EvaluationError",
    "GridSampler",
    "GridSpec",
    "InvalidGridSpec",
    "ModelFactory",
    "ModelInstantiationError",
    "PropagationModels",
    "PropagationSession",
    "RadioDevice",
    "RemConfigurationError",
    "RemEngine",
    "RemError",
    "RemMode",
    "RemPoint",
    "RemState",
    "SinrEvaluator",
    "SinrSample",
    "SpectrumModel",
    "generate_points",
    "generate_rem",
    "make_policy",
]
