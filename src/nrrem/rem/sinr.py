"""
SNR/SINR evaluation of one REM sample.

Per receiver band k:

    SNR_k  = S_k / N_k
    SINR_k = S_k / (N_k + sum_i I_i,k)

where S is the useful received PSD, N the noise PSD and I_i the received PSD
of interferer i. The reported value of a sample is the maximum over the
bands that carry useful signal, i.e. the best sub-band a receiver could pick.
Peak SINR is reported, not an effective SINR mapping.
"""

import logging
import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from nrrem.rem.beamforming import BeamformingPolicy, BeamShapePolicy
from nrrem.rem.device import RadioDevice
from nrrem.rem.errors import EvaluationError
from nrrem.rem.session import PropagationSession

logger = logging.getLogger(__name__)

# Thermal noise density in dBm/Hz at 290K
THERMAL_NOISE_DBM_HZ = -174.0


def to_db(value: float) -> float:
    """
    Convert a linear power ratio to dB.

    Raises:
        EvaluationError: If the value is not positive
    """
    if not value > 0 or not math.isfinite(value):
        raise EvaluationError(f"Cannot convert non-positive linear value {value} to dB")
    return 10.0 * math.log10(value)


def from_db(value_db: float) -> float:
    """Convert dB to a linear power ratio."""
    return 10.0 ** (value_db / 10.0)


def thermal_noise_psd(rx: RadioDevice) -> np.ndarray:
    """
    Noise PSD at the receiver in W/Hz, one value per receiver band.

    N0 (dBm/Hz) = -174 dBm/Hz + NF
    """
    density_w_hz = from_db(THERMAL_NOISE_DBM_HZ + rx.noise_figure_db - 30.0)
    return np.full(rx.spectrum.num_bands, density_w_hz)


@dataclass
class SinrSample:
    """SNR and SINR of one sample as linear ratios."""

    snr: float
    sinr: float

    @property
    def snr_db(self) -> float:
        return to_db(self.snr)

    @property
    def sinr_db(self) -> float:
        return to_db(self.sinr)


def max_snr(useful_psd: np.ndarray, noise_psd: np.ndarray) -> float:
    """Maximum per-band SNR over the bands carrying useful signal."""
    return max_sinr(useful_psd, [], noise_psd)


def max_sinr(
    useful_psd: np.ndarray,
    interference_psds: Sequence[np.ndarray],
    noise_psd: np.ndarray,
) -> float:
    """
    Maximum per-band SINR over the bands carrying useful signal.

    Raises:
        EvaluationError: If no band carries useful signal or a PSD is malformed
    """
    useful = np.asarray(useful_psd, dtype=float)
    noise = np.asarray(noise_psd, dtype=float)
    if useful.size == 0:
        raise EvaluationError("Empty useful signal spectrum")
    if noise.shape != useful.shape:
        raise EvaluationError(
            f"Noise PSD has {noise.size} bands, useful PSD has {useful.size}"
        )
    if np.any(noise <= 0):
        raise EvaluationError("Noise PSD must be positive on every band")

    interference = np.zeros_like(useful)
    for psd in interference_psds:
        psd = np.asarray(psd, dtype=float)
        if psd.shape != useful.shape:
            raise EvaluationError(
                f"Interference PSD has {psd.size} bands, useful PSD has {useful.size}"
            )
        interference += psd

    active = useful > 0
    if not np.any(active):
        raise EvaluationError("No band carries useful signal")
    return float(np.max(useful[active] / (noise[active] + interference[active])))


class SinrEvaluator:
    """
    Reduce received PSDs of one sample to scalar SNR/SINR.

    The beamforming policy's ``prepare_link`` runs before each transmitter's
    PSD is computed, so receiver steering follows the mode in use.
    """

    def __init__(self, policy: BeamformingPolicy | None = None):
        self.policy = policy if policy is not None else BeamShapePolicy()

    def received_psd(
        self, session: PropagationSession, tx: RadioDevice, rx: RadioDevice
    ) -> np.ndarray:
        self.policy.prepare_link(rx, tx)
        return session.compute_received_psd(tx, rx)

    def evaluate(
        self,
        session: PropagationSession,
        useful_tx: RadioDevice,
        interferers: Sequence[RadioDevice],
        rx: RadioDevice,
        noise_psd: np.ndarray,
    ) -> SinrSample:
        """
        Evaluate SNR/SINR for a given serving transmitter.

        Args:
            session: Open propagation session for this sample
            useful_tx: Transmitter carrying the useful signal
            interferers: Other transmitters (interference)
            rx: Receiver placed at the sample point
            noise_psd: Noise PSD per receiver band

        Returns:
            SinrSample with linear SNR and SINR

        Raises:
            EvaluationError: If no useful signal reaches the receiver
        """
        useful = self.received_psd(session, useful_tx, rx)
        interference = [self.received_psd(session, tx, rx) for tx in interferers]

        snr = max_snr(useful, noise_psd)
        sinr = max_sinr(useful, interference, noise_psd) if interference else snr

        logger.debug(
            "Sample %s at %s: SNR=%.2f dB, SINR=%.2f dB (%d interferers)",
            useful_tx.name,
            rx.position,
            to_db(snr),
            to_db(sinr),
            len(interference),
        )
        return SinrSample(snr=snr, sinr=sinr)

    def evaluate_best_server(
        self,
        session: PropagationSession,
        transmitters: Sequence[RadioDevice],
        rx: RadioDevice,
        noise_psd: np.ndarray,
    ) -> SinrSample:
        """
        Evaluate SNR/SINR with the best transmitter as server.

        Each transmitter's PSD is computed once. SNR is the maximum over all
        transmitters; SINR is the maximum over every choice of serving
        transmitter with the remaining ones as interference.

        Raises:
            EvaluationError: If no transmitter delivers useful signal
        """
        if not transmitters:
            raise EvaluationError("No transmitters to evaluate")

        psds = [self.received_psd(session, tx, rx) for tx in transmitters]
        best_snr = 0.0
        best_sinr = 0.0
        for index, useful in enumerate(psds):
            if not np.any(np.asarray(useful) > 0):
                continue
            others = psds[:index] + psds[index + 1:]
            best_snr = max(best_snr, max_snr(useful, noise_psd))
            best_sinr = max(best_sinr, max_sinr(useful, others, noise_psd))

        if best_snr <= 0:
            raise EvaluationError(
                f"No transmitter delivers useful signal at {rx.position}"
            )
        return SinrSample(snr=best_snr, sinr=best_sinr)
