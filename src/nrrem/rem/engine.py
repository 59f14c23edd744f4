"""
REM engine: orchestrates grid sampling, beamforming, propagation sessions,
SNR/SINR evaluation and averaging.

State machine:

    IDLE -> CONFIGURING -> SAMPLING <-> AVERAGING -> DONE

For every grid point the engine runs N iterations. Each iteration applies the
beamforming policy, opens a fresh PropagationSession, evaluates SNR/SINR and
closes the session. Linear values are averaged over the iterations and the
mean is converted to dB. Any error aborts the run; no partial map is handed
out.
"""

import logging
import time
from enum import Enum
from typing import Callable, Optional, Sequence

import numpy as np

from nrrem.rem.beamforming import RemMode, make_policy
from nrrem.rem.device import RadioDevice
from nrrem.rem.errors import RemConfigurationError
from nrrem.rem.grid import GridSpec, RemPoint, generate_points
from nrrem.rem.propagation import ModelFactories, PropagationModels
from nrrem.rem.session import PropagationSession
from nrrem.rem.sinr import SinrEvaluator, SinrSample, thermal_noise_psd, to_db

logger = logging.getLogger(__name__)


class RemState(str, Enum):
    """Lifecycle of a REM engine run."""

    IDLE = "idle"
    CONFIGURING = "configuring"
    SAMPLING = "sampling"
    AVERAGING = "averaging"
    DONE = "done"


class RemEngine:
    """
    Generate a radio environment map.

    Usage:
        engine = RemEngine(
            transmitters=[gnb1, gnb2],
            receiver=ue,
            models=live_models,
            grid=GridSpec(-100, 100, 20, -100, 100, 20, z=1.5),
            mode=RemMode.COVERAGE_AREA,
            iterations=10,
        )
        points = engine.run()
    """

    def __init__(
        self,
        transmitters: Sequence[RadioDevice],
        receiver: RadioDevice,
        models: PropagationModels,
        grid: GridSpec,
        mode: RemMode = RemMode.BEAM_SHAPE,
        iterations: int = 1,
        serving: Optional[str] = None,
        seed: Optional[int] = None,
        on_done: Optional[Callable[[list[RemPoint]], None]] = None,
    ):
        """
        Bind the engine inputs. Nothing is validated until configure().

        Args:
            transmitters: REM transmitting devices (RTDs)
            receiver: REM receiving device (RRD); moved to every grid point
            models: Live propagation models whose configuration is copied
            grid: Grid specification
            mode: Beamforming mode (beam-shape or coverage-area)
            iterations: Channel realizations averaged per point
            serving: Name of the useful transmitter; None selects the best server
            seed: Seed for reproducible maps; None draws fresh entropy
            on_done: Output collaborator receiving the finished point list
        """
        self.transmitters = list(transmitters)
        self.receiver = receiver
        self.models = models
        self.grid = grid
        self.mode = mode
        self.iterations = iterations
        self.serving = serving
        self.seed = seed
        self.on_done = on_done

        self.state = RemState.IDLE
        self.sessions_opened = 0
        self.elapsed_s: Optional[float] = None

        self._factories: Optional[ModelFactories] = None
        self._evaluator: Optional[SinrEvaluator] = None
        self._devices: list[RadioDevice] = []

    def configure(self) -> None:
        """
        Validate inputs and prepare the factories, policy and devices.

        Raises:
            RemConfigurationError: If iterations, transmitters or serving are invalid
            InvalidGridSpec: If the grid is invalid
            ModelInstantiationError: If a live model type cannot be rebuilt
        """
        self.state = RemState.CONFIGURING

        if int(self.iterations) != self.iterations or self.iterations < 1:
            raise RemConfigurationError(
                f"Number of iterations to average must be >= 1, got {self.iterations}"
            )
        if not self.transmitters:
            raise RemConfigurationError("At least one transmitting device is required")
        names = [tx.name for tx in self.transmitters]
        if len(set(names)) != len(names):
            raise RemConfigurationError(f"Transmitter names must be unique: {names}")
        if self.serving is not None and self.serving not in names:
            raise RemConfigurationError(
                f"Serving transmitter '{self.serving}' not found in {names}"
            )
        self.grid.validate()

        self._factories = self.models.factories()
        self._factories.validate()
        self.mode = RemMode(self.mode)
        self._evaluator = SinrEvaluator(make_policy(self.mode))
        # Private copies so antenna steering never touches the caller's scene
        self._devices = [tx.copy() for tx in self.transmitters]

        logger.info(
            "REM configured: mode=%s, %d transmitters, %d points, %d iterations/point",
            self.mode.value,
            len(self._devices),
            self.grid.num_points,
            self.iterations,
        )

    def run(self) -> list[RemPoint]:
        """
        Generate the map.

        Returns:
            Ordered list of RemPoint with averaged SNR/SINR in dB

        Raises:
            RemError: Any configuration or evaluation failure (fatal)
        """
        self.configure()
        seed_sequence = np.random.SeedSequence(self.seed)
        self.sessions_opened = 0
        start_time = time.perf_counter()

        points: list[RemPoint] = []
        for point in generate_points(self.grid):
            self.state = RemState.SAMPLING
            try:
                snr_sum, sinr_sum = self._sample_point(point, seed_sequence)
            except Exception:
                logger.error("REM generation aborted at point %s", point.position)
                raise

            self.state = RemState.AVERAGING
            point.avg_snr_db = to_db(snr_sum / self.iterations)
            point.avg_sinr_db = to_db(sinr_sum / self.iterations)
            points.append(point)

            logger.debug(
                "REM point %s: SNR=%.2f dB, SINR=%.2f dB",
                point.position,
                point.avg_snr_db,
                point.avg_sinr_db,
            )

        self.state = RemState.DONE
        self.elapsed_s = time.perf_counter() - start_time
        logger.info(
            "REM map created: %d points in %.2f s (%d sessions)",
            len(points),
            self.elapsed_s,
            self.sessions_opened,
        )

        if self.on_done is not None:
            self.on_done(points)
        return points

    def _sample_point(
        self, point: RemPoint, seed_sequence: np.random.SeedSequence
    ) -> tuple[float, float]:
        """Run all iterations of one point; return summed linear SNR and SINR."""
        receiver = self.receiver.at(point.position)
        noise_psd = thermal_noise_psd(receiver)
        policy = self._evaluator.policy

        snr_sum = 0.0
        sinr_sum = 0.0
        for _ in range(self.iterations):
            policy.apply(point.position, self._devices, receiver)
            rng = np.random.default_rng(seed_sequence.spawn(1)[0])
            with PropagationSession.open(self._factories, rng) as session:
                self.sessions_opened += 1
                sample = self._evaluate(session, receiver, noise_psd)
            snr_sum += sample.snr
            sinr_sum += sample.sinr
        return snr_sum, sinr_sum

    def _evaluate(
        self, session: PropagationSession, receiver: RadioDevice, noise_psd: np.ndarray
    ) -> SinrSample:
        if self.serving is None:
            return self._evaluator.evaluate_best_server(
                session, self._devices, receiver, noise_psd
            )
        useful = next(tx for tx in self._devices if tx.name == self.serving)
        interferers = [tx for tx in self._devices if tx.name != self.serving]
        return self._evaluator.evaluate(session, useful, interferers, receiver, noise_psd)


def generate_rem(
    transmitters: Sequence[RadioDevice],
    receiver: RadioDevice,
    models: PropagationModels,
    grid: GridSpec,
    mode: RemMode = RemMode.BEAM_SHAPE,
    iterations: int = 1,
    serving: Optional[str] = None,
    seed: Optional[int] = None,
) -> list[RemPoint]:
    """Convenience function: build an engine and run it."""
    engine = RemEngine(
        transmitters=transmitters,
        receiver=receiver,
        models=models,
        grid=grid,
        mode=mode,
        iterations=iterations,
        serving=serving,
        seed=seed,
    )
    return engine.run()
