"""
Per-sample propagation sessions.

A PropagationSession owns private pathloss, fast-fading and channel condition
models for exactly one REM sample (one grid point, one iteration). The models
are built fresh from factories on open and dropped on close, so the per-link
random state of one sample can never leak into another.

Usage:
    with PropagationSession.open(factories, rng) as session:
        psd = session.compute_received_psd(tx, rx)
"""

import logging
from typing import Optional

import numpy as np

from nrrem.rem.antenna import direction_between
from nrrem.rem.device import RadioDevice
from nrrem.rem.errors import EvaluationError
from nrrem.rem.propagation import (
    ChannelConditionModel,
    FastFadingModel,
    ModelFactories,
    PathlossModel,
)

logger = logging.getLogger(__name__)


class PropagationSession:
    """Scoped owner of one set of propagation model instances."""

    def __init__(
        self,
        pathloss_model: PathlossModel,
        fast_fading_model: FastFadingModel,
        channel_condition_model: ChannelConditionModel,
    ):
        self.pathloss_model = pathloss_model
        self.fast_fading_model = fast_fading_model
        self.channel_condition_model = channel_condition_model
        self._closed = False

    @classmethod
    def open(
        cls, factories: ModelFactories, rng: Optional[np.random.Generator] = None
    ) -> "PropagationSession":
        """
        Build a session with brand-new model instances.

        Args:
            factories: Factories holding the copied live-model configuration
            rng: Random generator private to this session

        Raises:
            ModelInstantiationError: If a model cannot be built
        """
        return cls(
            pathloss_model=factories.pathloss.create(rng),
            fast_fading_model=factories.fast_fading.create(rng),
            channel_condition_model=factories.channel_condition.create(rng),
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def compute_received_psd(self, tx: RadioDevice, rx: RadioDevice) -> np.ndarray:
        """
        Received power spectral density at rx from tx, per receiver band.

        PSD_rx(f) = PSD_tx * G_tx * G_rx * 10^(-PL/10) * fading(f)

        Bands of the receiver outside the transmitter's allocation receive
        nothing. Antenna gains use the orientations currently configured on
        both devices.

        Args:
            tx: Transmitting device
            rx: Receiving device

        Returns:
            Array of PSD values in W/Hz, one per receiver band
        """
        if self._closed:
            raise EvaluationError("Propagation session is closed")

        frequencies = rx.spectrum.centers_hz
        condition = self.channel_condition_model.get_condition(tx, rx)
        path_loss_db = self.pathloss_model.path_loss_db(tx, rx, condition)

        tx_azimuth, tx_zenith = direction_between(tx.position, rx.position)
        rx_azimuth, rx_zenith = direction_between(rx.position, tx.position)
        tx_gain = tx.antenna.gain_linear(tx_azimuth, tx_zenith)
        rx_gain = rx.antenna.gain_linear(rx_azimuth, rx_zenith)

        fading = np.asarray(
            self.fast_fading_model.gains(tx, rx, frequencies, condition), dtype=float
        )
        in_band = tx.spectrum.occupancy(frequencies)

        psd = (
            tx.tx_psd()
            * tx_gain
            * rx_gain
            * 10 ** (-path_loss_db / 10.0)
            * fading
            * in_band
        )

        logger.debug(
            "PSD %s->%s: cond=%s, PL=%.1f dB, G_tx=%.1f dBi, G_rx=%.1f dBi, bands=%d/%d",
            tx.name,
            rx.name,
            condition.value,
            path_loss_db,
            _to_dbi(tx_gain),
            _to_dbi(rx_gain),
            int(in_band.sum()),
            in_band.size,
        )
        return psd

    def close(self) -> None:
        """Release the models and their per-link state."""
        if self._closed:
            return
        for model in (
            self.pathloss_model,
            self.fast_fading_model,
            self.channel_condition_model,
        ):
            model.clear()
        self._closed = True

    def __enter__(self) -> "PropagationSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _to_dbi(gain: float) -> float:
    return 10 * np.log10(gain) if gain > 0 else -np.inf
