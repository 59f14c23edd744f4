"""
Pydantic models for nrrem scenario configuration.

This module defines the schema for scenario.yaml files that describe:
- Transmitting devices (gNBs) and the evaluation receiver (UE)
- Antenna arrays and bandwidth parts of every device
- Propagation models (pathloss, fast fading, channel condition)
- REM grid and generation settings
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

from nrrem.rem.beamforming import RemMode


class AntennaElement(str, Enum):
    """Supported antenna element patterns."""

    ISO = "iso"  # Isotropic element
    TR38901 = "tr38901"  # 3GPP TR 38.901 directional element


class Position(BaseModel):
    """3D position coordinates in meters."""

    model_config = ConfigDict(extra="forbid")

    x: float = Field(..., description="X coordinate in meters")
    y: float = Field(..., description="Y coordinate in meters")
    z: float = Field(default=1.5, description="Z coordinate in meters (height)")

    def as_tuple(self) -> tuple[float, float, float]:
        """Return position as (x, y, z) tuple."""
        return (self.x, self.y, self.z)


class BeamConfig(BaseModel):
    """Fixed beam direction configured on an antenna (beam-shape maps)."""

    model_config = ConfigDict(extra="forbid")

    azimuth_deg: float = Field(default=0.0, description="Global azimuth of the beam")
    zenith_deg: float = Field(
        default=90.0, description="Global zenith of the beam (90 = horizon)", ge=0.0, le=180.0
    )


class AntennaConfig(BaseModel):
    """Uniform planar antenna array."""

    model_config = ConfigDict(extra="forbid")

    rows: int = Field(default=1, description="Number of element rows", ge=1, le=64)
    columns: int = Field(default=1, description="Number of element columns", ge=1, le=64)
    element: AntennaElement = Field(default=AntennaElement.ISO)
    bearing_deg: float = Field(default=0.0, description="Array bearing in degrees")
    beam: BeamConfig | None = Field(
        default=None, description="Fixed beam; quasi-omni when omitted"
    )


class BandwidthPartConfig(BaseModel):
    """One bandwidth part of a device."""

    model_config = ConfigDict(extra="forbid")

    frequency_ghz: float = Field(
        default=3.5, description="Carrier frequency in GHz", gt=0.0, le=100.0
    )
    bandwidth_mhz: float = Field(
        default=20.0, description="Bandwidth in MHz", gt=0.0, le=1000.0
    )
    numerology: int = Field(default=0, description="NR numerology (mu)", ge=0, le=4)

    @model_validator(mode="after")
    def validate_holds_resource_block(self) -> "BandwidthPartConfig":
        """Ensure the bandwidth holds at least one resource block."""
        rb_width_mhz = 12 * 15e-3 * 2**self.numerology
        if self.bandwidth_mhz < rb_width_mhz:
            raise ValueError(
                f"Bandwidth {self.bandwidth_mhz} MHz is narrower than one resource block "
                f"({rb_width_mhz:.3f} MHz) at numerology {self.numerology}"
            )
        return self

    @property
    def frequency_hz(self) -> float:
        """Return frequency in Hz."""
        return self.frequency_ghz * 1e9

    @property
    def bandwidth_hz(self) -> float:
        """Return bandwidth in Hz."""
        return self.bandwidth_mhz * 1e6


class DeviceConfig(BaseModel):
    """Radio parameters of one device."""

    model_config = ConfigDict(extra="forbid")

    position: Position = Field(default_factory=lambda: Position(x=0.0, y=0.0))
    tx_power_dbm: float = Field(
        default=43.0, description="Transmit power in dBm", ge=-30.0, le=80.0
    )
    noise_figure_db: float = Field(
        default=5.0, description="Receiver noise figure in dB", ge=0.0, le=20.0
    )
    antenna: AntennaConfig = Field(default_factory=AntennaConfig)
    bandwidth_parts: list[BandwidthPartConfig] = Field(
        default_factory=lambda: [BandwidthPartConfig()],
        description="Bandwidth parts, indexed by bwp_id",
        min_length=1,
    )


class ModelConfig(BaseModel):
    """A propagation model selected by type name plus its attributes."""

    model_config = ConfigDict(extra="forbid")

    type: str = Field(..., description="Registered model type name")
    params: dict[str, Any] = Field(
        default_factory=dict, description="Constructor attributes of the model"
    )


class PropagationConfig(BaseModel):
    """Propagation models used to build the live scenario models."""

    model_config = ConfigDict(extra="forbid")

    pathloss: ModelConfig = Field(default_factory=lambda: ModelConfig(type="log-distance"))
    fading: ModelConfig = Field(default_factory=lambda: ModelConfig(type="rayleigh"))
    channel_condition: ModelConfig = Field(
        default_factory=lambda: ModelConfig(type="probabilistic")
    )


class GridConfig(BaseModel):
    """REM grid bounds, resolution and height."""

    model_config = ConfigDict(extra="forbid")

    x_min: float = Field(default=-100.0)
    x_max: float = Field(default=100.0)
    x_resolution: int = Field(default=20, ge=1, description="Number of steps along x")
    y_min: float = Field(default=-100.0)
    y_max: float = Field(default=100.0)
    y_resolution: int = Field(default=20, ge=1, description="Number of steps along y")
    z: float = Field(default=1.5, description="Evaluation height in meters")

    @field_validator("x_max", mode="after")
    @classmethod
    def validate_x_bounds(cls, v: float, info: ValidationInfo) -> float:
        """Ensure x_max > x_min."""
        x_min = info.data.get("x_min")
        if x_min is not None and v <= x_min:
            raise ValueError(f"x_max ({v}) must be greater than x_min ({x_min})")
        return v

    @field_validator("y_max", mode="after")
    @classmethod
    def validate_y_bounds(cls, v: float, info: ValidationInfo) -> float:
        """Ensure y_max > y_min."""
        y_min = info.data.get("y_min")
        if y_min is not None and v <= y_min:
            raise ValueError(f"y_max ({v}) must be greater than y_min ({y_min})")
        return v


class RemConfig(BaseModel):
    """REM generation settings."""

    model_config = ConfigDict(extra="forbid")

    mode: RemMode = Field(default=RemMode.BEAM_SHAPE)
    iterations: int = Field(
        default=1, description="Channel realizations averaged per point", ge=1, le=10000
    )
    serving: str | None = Field(
        default=None, description="Useful transmitter; best server when omitted"
    )
    transmitters: list[str] | None = Field(
        default=None, description="Transmitters taking part; all when omitted"
    )
    bwp_id: int = Field(default=0, description="Bandwidth part to evaluate", ge=0)
    seed: int | None = Field(default=None, description="Seed for reproducible maps", ge=0)


class ScenarioConfig(BaseModel):
    """Root definition for scenario.yaml files."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Scenario name")
    grid: GridConfig = Field(default_factory=GridConfig)
    rem: RemConfig = Field(default_factory=RemConfig)
    propagation: PropagationConfig = Field(default_factory=PropagationConfig)
    transmitters: dict[str, DeviceConfig] = Field(
        ..., description="Transmitting devices by name", min_length=1
    )
    receiver: DeviceConfig = Field(default_factory=lambda: DeviceConfig(tx_power_dbm=23.0))

    @model_validator(mode="after")
    def validate_rem_references(self) -> "ScenarioConfig":
        """Check that REM settings reference existing transmitters and BWPs."""
        selected = self.rem.transmitters or list(self.transmitters)
        for name in selected:
            if name not in self.transmitters:
                raise ValueError(f"REM transmitter '{name}' not found in transmitters")
        if self.rem.serving is not None and self.rem.serving not in selected:
            raise ValueError(
                f"Serving transmitter '{self.rem.serving}' is not part of the REM transmitters"
            )

        bwp_id = self.rem.bwp_id
        devices = [("receiver", self.receiver)] + [
            (name, self.transmitters[name]) for name in selected
        ]
        for name, device in devices:
            if bwp_id >= len(device.bandwidth_parts):
                raise ValueError(
                    f"Device '{name}' has no bandwidth part {bwp_id} "
                    f"({len(device.bandwidth_parts)} configured)"
                )
        return self

    @property
    def selected_transmitters(self) -> list[str]:
        """Names of the transmitters taking part in the REM."""
        return self.rem.transmitters or list(self.transmitters)
