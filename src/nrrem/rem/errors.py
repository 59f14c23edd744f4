"""
REM engine error hierarchy.

Configuration errors (RemConfigurationError, InvalidGridSpec) are raised
before any sampling begins. Run-time errors (ModelInstantiationError,
EvaluationError) abort the whole run: a partial map is never returned.
"""


class RemError(Exception):
    """Base error for REM generation."""


class RemConfigurationError(RemError):
    """The engine inputs are inconsistent (no transmitters, bad iteration count, ...)."""


class InvalidGridSpec(RemConfigurationError):
    """Grid bounds or resolution are invalid."""


class ModelInstantiationError(RemError):
    """A propagation, fading or channel condition model could not be built."""


class EvaluationError(RemError):
    """A power value or spectrum was unusable during SNR/SINR evaluation."""
