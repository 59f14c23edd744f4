"""
Pluggable propagation models for REM generation.

Three model kinds take part in every received-power computation:

- ChannelConditionModel: LOS/NLOS state of a link
- PathlossModel: large-scale attenuation (pathloss plus shadowing)
- FastFadingModel: small-scale per-band power gain

Stochastic models draw their random values once per link (device pair) and
keep them for the lifetime of the instance, like the 3GPP models they stand
in for. Instances must therefore never be shared between independent REM
samples: ModelFactory rebuilds fresh instances from the attributes of the
scenario's live models (see nrrem.rem.session).
"""

import copy
import logging
import math
import numbers
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Optional, Union

import numpy as np

from nrrem.rem.errors import ModelInstantiationError

if TYPE_CHECKING:
    from nrrem.rem.device import RadioDevice

logger = logging.getLogger(__name__)

MIN_DISTANCE_M = 1.0
SPEED_OF_LIGHT = 3e8

MODEL_REGISTRY: dict[str, type["PropagationModel"]] = {}


def register_model(cls: type["PropagationModel"]) -> type["PropagationModel"]:
    """Class decorator making a model constructible by its type name."""
    MODEL_REGISTRY[cls.type_name] = cls
    return cls


class ChannelCondition(str, Enum):
    """Line-of-sight state of a link."""

    LOS = "los"
    NLOS = "nlos"


def link_key(tx: "RadioDevice", rx: "RadioDevice") -> tuple:
    """Key identifying a device pair (and its geometry) inside a model instance."""
    return (tx.name, tx.position, rx.name, rx.position)


def link_distance(tx: "RadioDevice", rx: "RadioDevice") -> float:
    """3D distance between two devices, clamped to MIN_DISTANCE_M."""
    distance = math.dist(tx.position, rx.position)
    return max(distance, MIN_DISTANCE_M)


def free_space_path_loss_db(distance_m: float, frequency_hz: float) -> float:
    """
    Free-space path loss (Friis).

    FSPL (dB) = 20*log10(d) + 20*log10(f) + 20*log10(4*pi/c)
    """
    return (
        20 * math.log10(distance_m)
        + 20 * math.log10(frequency_hz)
        + 20 * math.log10(4 * math.pi / SPEED_OF_LIGHT)
    )


def model_float(name: str, value: Any) -> float:
    """
    Coerce a numeric model attribute.

    Raises:
        TypeError: If the value is not a real number (strings and bools included)
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise TypeError(f"{name} must be a number, got {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite, got {value}")
    return value


def model_bool(name: str, value: Any) -> bool:
    """
    Check a boolean model attribute.

    Raises:
        TypeError: If the value is not a bool
    """
    if not isinstance(value, (bool, np.bool_)):
        raise TypeError(f"{name} must be true or false, got {value!r}")
    return bool(value)


class PropagationModel:
    """Base class: holds the random generator and exposes configuration attributes."""

    type_name: ClassVar[str] = ""

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self._rng = rng if rng is not None else np.random.default_rng()

    def get_attributes(self) -> dict[str, Any]:
        """Configuration attributes (constructor keyword arguments, no random state)."""
        return {}

    def clear(self) -> None:
        """Drop any per-link random state."""

    def __repr__(self) -> str:
        attrs = ", ".join(f"{k}={v!r}" for k, v in self.get_attributes().items())
        return f"{type(self).__name__}({attrs})"


# ============================================================================
# Channel condition models
# ============================================================================


class ChannelConditionModel(PropagationModel):
    """Decides LOS/NLOS per link; the decision is cached per device pair."""

    def __init__(self, rng: Optional[np.random.Generator] = None):
        super().__init__(rng)
        self._conditions: dict[tuple, ChannelCondition] = {}

    def get_condition(self, tx: "RadioDevice", rx: "RadioDevice") -> ChannelCondition:
        key = link_key(tx, rx)
        if key not in self._conditions:
            self._conditions[key] = self._draw_condition(tx, rx)
        return self._conditions[key]

    def _draw_condition(self, tx: "RadioDevice", rx: "RadioDevice") -> ChannelCondition:
        raise NotImplementedError

    def clear(self) -> None:
        self._conditions.clear()


@register_model
class AlwaysLosChannelConditionModel(ChannelConditionModel):
    """Every link is in line of sight."""

    type_name = "always-los"

    def _draw_condition(self, tx, rx):
        return ChannelCondition.LOS


@register_model
class AlwaysNlosChannelConditionModel(ChannelConditionModel):
    """Every link is obstructed."""

    type_name = "always-nlos"

    def _draw_condition(self, tx, rx):
        return ChannelCondition.NLOS


@register_model
class ProbabilisticChannelConditionModel(ChannelConditionModel):
    """
    Distance-based LOS probability (TR 38.901 UMi form).

    P_los(d) = 1                                   for d <= d1
    P_los(d) = d1/d + exp(-d/d2) * (1 - d1/d)      otherwise

    where d is the 2D distance between the devices.
    """

    type_name = "probabilistic"

    def __init__(
        self,
        los_distance_m: float = 18.0,
        decay_distance_m: float = 36.0,
        rng: Optional[np.random.Generator] = None,
    ):
        los_distance_m = model_float("los_distance_m", los_distance_m)
        decay_distance_m = model_float("decay_distance_m", decay_distance_m)
        if los_distance_m <= 0 or decay_distance_m <= 0:
            raise ValueError("LOS breakpoint distances must be positive")
        super().__init__(rng)
        self.los_distance_m = los_distance_m
        self.decay_distance_m = decay_distance_m

    def get_attributes(self) -> dict[str, Any]:
        return {
            "los_distance_m": self.los_distance_m,
            "decay_distance_m": self.decay_distance_m,
        }

    def los_probability(self, distance_2d_m: float) -> float:
        d1 = self.los_distance_m
        if distance_2d_m <= d1:
            return 1.0
        return d1 / distance_2d_m + math.exp(-distance_2d_m / self.decay_distance_m) * (
            1 - d1 / distance_2d_m
        )

    def _draw_condition(self, tx, rx):
        distance_2d = math.dist(tx.position[:2], rx.position[:2])
        if self._rng.random() < self.los_probability(distance_2d):
            return ChannelCondition.LOS
        return ChannelCondition.NLOS


# ============================================================================
# Pathloss models
# ============================================================================


class PathlossModel(PropagationModel):
    """Large-scale attenuation of a link in dB (positive value)."""

    def path_loss_db(
        self, tx: "RadioDevice", rx: "RadioDevice", condition: ChannelCondition
    ) -> float:
        raise NotImplementedError


@register_model
class FreeSpacePathlossModel(PathlossModel):
    """Deterministic free-space pathloss at the transmitter's carrier frequency."""

    type_name = "free-space"

    def path_loss_db(self, tx, rx, condition):
        return free_space_path_loss_db(link_distance(tx, rx), tx.frequency_hz)


@register_model
class LogDistancePathlossModel(PathlossModel):
    """
    Close-in (CI) log-distance pathloss with log-normal shadowing.

    PL(d) = FSPL(d0) + 10 * n * log10(d / d0) + X_sigma

    The exponent n and the shadowing deviation sigma depend on the channel
    condition. The shadowing draw is made once per link and condition.
    """

    type_name = "log-distance"

    def __init__(
        self,
        los_exponent: float = 2.0,
        nlos_exponent: float = 3.5,
        los_shadowing_std_db: float = 4.0,
        nlos_shadowing_std_db: float = 7.8,
        reference_distance_m: float = 1.0,
        shadowing: bool = True,
        rng: Optional[np.random.Generator] = None,
    ):
        los_exponent = model_float("los_exponent", los_exponent)
        nlos_exponent = model_float("nlos_exponent", nlos_exponent)
        los_shadowing_std_db = model_float("los_shadowing_std_db", los_shadowing_std_db)
        nlos_shadowing_std_db = model_float("nlos_shadowing_std_db", nlos_shadowing_std_db)
        reference_distance_m = model_float("reference_distance_m", reference_distance_m)
        shadowing = model_bool("shadowing", shadowing)
        if reference_distance_m <= 0:
            raise ValueError("Reference distance must be positive")
        if los_shadowing_std_db < 0 or nlos_shadowing_std_db < 0:
            raise ValueError("Shadowing standard deviation cannot be negative")
        super().__init__(rng)
        self.los_exponent = los_exponent
        self.nlos_exponent = nlos_exponent
        self.los_shadowing_std_db = los_shadowing_std_db
        self.nlos_shadowing_std_db = nlos_shadowing_std_db
        self.reference_distance_m = reference_distance_m
        self.shadowing = shadowing
        self._shadowing_db: dict[tuple, float] = {}

    def get_attributes(self) -> dict[str, Any]:
        return {
            "los_exponent": self.los_exponent,
            "nlos_exponent": self.nlos_exponent,
            "los_shadowing_std_db": self.los_shadowing_std_db,
            "nlos_shadowing_std_db": self.nlos_shadowing_std_db,
            "reference_distance_m": self.reference_distance_m,
            "shadowing": self.shadowing,
        }

    def path_loss_db(self, tx, rx, condition):
        distance = max(link_distance(tx, rx), self.reference_distance_m)
        if condition == ChannelCondition.LOS:
            exponent, sigma = self.los_exponent, self.los_shadowing_std_db
        else:
            exponent, sigma = self.nlos_exponent, self.nlos_shadowing_std_db

        loss = free_space_path_loss_db(self.reference_distance_m, tx.frequency_hz) + (
            10 * exponent * math.log10(distance / self.reference_distance_m)
        )
        if self.shadowing and sigma > 0:
            key = link_key(tx, rx) + (condition,)
            if key not in self._shadowing_db:
                self._shadowing_db[key] = float(self._rng.normal(0.0, sigma))
            loss += self._shadowing_db[key]
        return loss

    def clear(self) -> None:
        self._shadowing_db.clear()


# ============================================================================
# Fast fading models
# ============================================================================


class FastFadingModel(PropagationModel):
    """Small-scale power gain per frequency band (linear, mean 1)."""

    def gains(
        self,
        tx: "RadioDevice",
        rx: "RadioDevice",
        frequencies_hz: np.ndarray,
        condition: ChannelCondition,
    ) -> np.ndarray:
        raise NotImplementedError


@register_model
class NoFadingModel(FastFadingModel):
    """Unit gain on every band."""

    type_name = "none"

    def gains(self, tx, rx, frequencies_hz, condition):
        return np.ones(len(frequencies_hz))


@register_model
class RayleighFadingModel(FastFadingModel):
    """
    Rayleigh block fading in frequency.

    Each coherence block gets an exponentially distributed power gain with unit
    mean. Without a coherence bandwidth every band fades independently. Draws
    are made once per link for the lifetime of the instance.
    """

    type_name = "rayleigh"

    def __init__(
        self,
        coherence_bandwidth_hz: Optional[float] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        if coherence_bandwidth_hz is not None:
            coherence_bandwidth_hz = model_float("coherence_bandwidth_hz", coherence_bandwidth_hz)
            if coherence_bandwidth_hz <= 0:
                raise ValueError("Coherence bandwidth must be positive")
        super().__init__(rng)
        self.coherence_bandwidth_hz = coherence_bandwidth_hz
        self._gains: dict[tuple, np.ndarray] = {}

    def get_attributes(self) -> dict[str, Any]:
        return {"coherence_bandwidth_hz": self.coherence_bandwidth_hz}

    def gains(self, tx, rx, frequencies_hz, condition):
        freqs = np.asarray(frequencies_hz, dtype=float)
        key = link_key(tx, rx) + (freqs.size,)
        if key not in self._gains:
            if self.coherence_bandwidth_hz is None or freqs.size == 0:
                blocks = np.arange(freqs.size)
            else:
                blocks = np.floor(
                    (freqs - freqs.min()) / self.coherence_bandwidth_hz
                ).astype(int)
            block_gains = self._rng.exponential(1.0, size=int(blocks.max(initial=-1)) + 1)
            self._gains[key] = block_gains[blocks]
        return self._gains[key]

    def clear(self) -> None:
        self._gains.clear()


# ============================================================================
# Factories
# ============================================================================


class ModelFactory:
    """
    Build fresh model instances of one type with fixed attributes.

    The factory holds a type and a deep copy of the attribute values, never a
    model instance, so every created model starts with empty random state.
    """

    def __init__(
        self,
        model_type: Union[str, type[PropagationModel]],
        attributes: Optional[dict[str, Any]] = None,
        kind: type[PropagationModel] = PropagationModel,
    ):
        self.model_type = model_type
        self.attributes = copy.deepcopy(attributes or {})
        self.kind = kind

    @classmethod
    def from_model(
        cls, model: PropagationModel, kind: type[PropagationModel] = PropagationModel
    ) -> "ModelFactory":
        """Capture the type and configuration of a live model."""
        return cls(type(model), model.get_attributes(), kind=kind)

    @property
    def type_name(self) -> str:
        if isinstance(self.model_type, str):
            return self.model_type
        return self.model_type.type_name or self.model_type.__name__

    def resolve_type(self) -> type[PropagationModel]:
        """
        Return the model class.

        Raises:
            ModelInstantiationError: If the type is unknown or of the wrong kind
        """
        model_cls = self.model_type
        if isinstance(model_cls, str):
            if model_cls not in MODEL_REGISTRY:
                valid = ", ".join(sorted(MODEL_REGISTRY))
                raise ModelInstantiationError(
                    f"Unknown propagation model type: '{model_cls}'. Valid types: {valid}"
                )
            model_cls = MODEL_REGISTRY[model_cls]
        if not (isinstance(model_cls, type) and issubclass(model_cls, self.kind)):
            raise ModelInstantiationError(
                f"Model type '{self.type_name}' is not a {self.kind.__name__}"
            )
        return model_cls

    def create(self, rng: Optional[np.random.Generator] = None) -> PropagationModel:
        """
        Instantiate a new model.

        Raises:
            ModelInstantiationError: If the model cannot be built
        """
        model_cls = self.resolve_type()
        try:
            return model_cls(**copy.deepcopy(self.attributes), rng=rng)
        except (TypeError, ValueError) as e:
            raise ModelInstantiationError(
                f"Cannot instantiate {self.type_name} with {self.attributes}: {e}"
            ) from e

    def __repr__(self) -> str:
        return f"ModelFactory({self.type_name}, {self.attributes})"


@dataclass
class PropagationModels:
    """The scenario's live models: the configuration source for every session."""

    pathloss: PathlossModel
    fast_fading: FastFadingModel
    channel_condition: ChannelConditionModel

    def factories(self) -> "ModelFactories":
        """Capture factories whose attributes are copied from the live models."""
        return ModelFactories(
            pathloss=ModelFactory.from_model(self.pathloss, kind=PathlossModel),
            fast_fading=ModelFactory.from_model(self.fast_fading, kind=FastFadingModel),
            channel_condition=ModelFactory.from_model(
                self.channel_condition, kind=ChannelConditionModel
            ),
        )


@dataclass
class ModelFactories:
    """One factory per model kind."""

    pathloss: ModelFactory
    fast_fading: ModelFactory
    channel_condition: ModelFactory

    def validate(self) -> None:
        """Resolve every model type up front so bad types fail before sampling."""
        for factory in (self.pathloss, self.fast_fading, self.channel_condition):
            factory.resolve_type()
