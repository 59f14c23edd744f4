"""
Unit tests for engine.py - REM generation.

Tests include:
- Determinism and seeding
- Spatial sanity (nearest point is best)
- Coverage-area vs beam-shape
- Convergence of iteration averaging
- Session isolation (fresh models per sample, live models untouched)
- Configuration errors and state machine
"""

import math

import pytest

from nrrem.rem.antenna import AntennaArray
from nrrem.rem.beamforming import RemMode
from nrrem.rem.device import BandwidthPart
from nrrem.rem.engine import RemEngine, RemState, generate_rem
from nrrem.rem.errors import (
    EvaluationError,
    InvalidGridSpec,
    ModelInstantiationError,
    RemConfigurationError,
)
from nrrem.rem.grid import GridSpec
from nrrem.rem.propagation import (
    AlwaysLosChannelConditionModel,
    FreeSpacePathlossModel,
    LogDistancePathlossModel,
    NoFadingModel,
    ProbabilisticChannelConditionModel,
    PropagationModels,
    RayleighFadingModel,
)
from nrrem.rem.sinr import from_db


def single_point_grid(x: float, y: float, z: float = 1.5) -> GridSpec:
    return GridSpec(
        x_min=x, x_max=x + 1.0, x_resolution=1,
        y_min=y, y_max=y + 1.0, y_resolution=1,
        z=z,
    )


@pytest.fixture
def stochastic_models() -> PropagationModels:
    return PropagationModels(
        pathloss=LogDistancePathlossModel(),
        fast_fading=RayleighFadingModel(),
        channel_condition=ProbabilisticChannelConditionModel(),
    )


class TestDeterminism:
    def test_deterministic_models_are_idempotent(
        self, make_device, receiver, deterministic_models, small_grid
    ):
        transmitters = [make_device()]
        first = generate_rem(transmitters, receiver, deterministic_models, small_grid, iterations=3)
        second = generate_rem(transmitters, receiver, deterministic_models, small_grid, iterations=3)

        assert [p.position for p in first] == [p.position for p in second]
        assert [p.avg_snr_db for p in first] == [p.avg_snr_db for p in second]
        assert [p.avg_sinr_db for p in first] == [p.avg_sinr_db for p in second]

    def test_same_seed_reproduces_map(
        self, make_device, receiver, stochastic_models, small_grid
    ):
        transmitters = [make_device(), make_device(name="gnb2", position=(150.0, 0.0, 25.0))]
        first = generate_rem(
            transmitters, receiver, stochastic_models, small_grid, iterations=2, seed=5
        )
        second = generate_rem(
            transmitters, receiver, stochastic_models, small_grid, iterations=2, seed=5
        )
        other = generate_rem(
            transmitters, receiver, stochastic_models, small_grid, iterations=2, seed=6
        )

        assert [p.avg_sinr_db for p in first] == [p.avg_sinr_db for p in second]
        assert [p.avg_sinr_db for p in first] != [p.avg_sinr_db for p in other]


class TestSpatialSanity:
    def test_closest_point_has_best_snr(
        self, make_device, receiver, deterministic_models, small_grid
    ):
        points = generate_rem([make_device()], receiver, deterministic_models, small_grid)

        assert len(points) == 9
        best = max(points, key=lambda p: p.avg_snr_db)
        assert best.position == (0.0, 0.0, 1.5)

    def test_single_transmitter_sinr_equals_snr(
        self, make_device, receiver, deterministic_models, small_grid
    ):
        points = generate_rem([make_device()], receiver, deterministic_models, small_grid)
        for point in points:
            assert point.avg_sinr_db == point.avg_snr_db

    def test_sinr_never_exceeds_snr(
        self, make_device, receiver, stochastic_models, small_grid
    ):
        transmitters = [make_device(), make_device(name="gnb2", position=(150.0, 0.0, 25.0))]
        points = generate_rem(
            transmitters, receiver, stochastic_models, small_grid, iterations=3, seed=2
        )
        for point in points:
            assert point.avg_sinr_db <= point.avg_snr_db + 1e-9


class TestModes:
    def test_coverage_area_not_worse_than_beam_shape(
        self, make_device, receiver, deterministic_models
    ):
        """A fixed beam toward +x loses to a beam steered at the point (0, 100)."""
        antenna = AntennaArray(num_rows=4, num_columns=8)
        antenna.steer_towards(0.0, math.pi / 2)
        tx = make_device(antenna=antenna)
        grid = single_point_grid(0.0, 100.0)

        beam_shape = generate_rem(
            [tx], receiver, deterministic_models, grid, mode=RemMode.BEAM_SHAPE
        )
        coverage = generate_rem(
            [tx], receiver, deterministic_models, grid, mode=RemMode.COVERAGE_AREA
        )

        assert coverage[0].avg_snr_db >= beam_shape[0].avg_snr_db
        assert tx.antenna.beam == (0.0, math.pi / 2)

    def test_coverage_area_gain_is_full_array_gain(
        self, make_device, receiver, deterministic_models
    ):
        """Steering a 4x8 array onto the point adds 10*log10(32) dB over quasi-omni."""
        grid = single_point_grid(60.0, 80.0)
        omni = generate_rem([make_device()], receiver, deterministic_models, grid)
        steered = generate_rem(
            [make_device(antenna=AntennaArray(num_rows=4, num_columns=8))],
            receiver,
            deterministic_models,
            grid,
            mode=RemMode.COVERAGE_AREA,
        )
        assert steered[0].avg_snr_db - omni[0].avg_snr_db == pytest.approx(10 * math.log10(32))

    def test_explicit_serving_not_better_than_best_server(
        self, make_device, receiver, deterministic_models, small_grid
    ):
        transmitters = [make_device(), make_device(name="gnb2", position=(100.0, 100.0, 25.0))]
        best = generate_rem(transmitters, receiver, deterministic_models, small_grid)
        fixed = generate_rem(
            transmitters, receiver, deterministic_models, small_grid, serving="gnb1"
        )
        for b, f in zip(best, fixed):
            assert f.avg_sinr_db <= b.avg_sinr_db + 1e-9
        # Far corner is served better by gnb2
        assert fixed[-1].avg_sinr_db < best[-1].avg_sinr_db


class TestAveraging:
    def test_converges_to_unfaded_value(
        self, make_device, receiver, deterministic_models, uniform_fading_model
    ):
        """Mean-one flat fading averages out to the unfaded SNR."""
        grid = single_point_grid(30.0, 40.0)
        tx = make_device()
        base = generate_rem([tx], receiver, deterministic_models, grid)[0].avg_snr_db

        faded_models = PropagationModels(
            pathloss=FreeSpacePathlossModel(),
            fast_fading=uniform_fading_model,
            channel_condition=AlwaysLosChannelConditionModel(),
        )
        averaged = generate_rem(
            [tx], receiver, faded_models, grid, iterations=1000, seed=42
        )[0].avg_snr_db

        assert from_db(averaged) / from_db(base) == pytest.approx(1.0, rel=0.05)

    def test_single_iteration_keeps_fading(
        self, make_device, receiver, deterministic_models, uniform_fading_model
    ):
        """A single faded iteration differs from the unfaded value."""
        grid = single_point_grid(30.0, 40.0)
        tx = make_device()
        base = generate_rem([tx], receiver, deterministic_models, grid)[0].avg_snr_db
        faded_models = PropagationModels(
            pathloss=FreeSpacePathlossModel(),
            fast_fading=uniform_fading_model,
            channel_condition=AlwaysLosChannelConditionModel(),
        )
        single = generate_rem([tx], receiver, faded_models, grid, iterations=1, seed=3)
        assert single[0].avg_snr_db != pytest.approx(base, abs=1e-9)


class TestSessionIsolation:
    def test_fresh_models_per_sample(
        self, make_device, receiver, small_grid, tracking_condition_model
    ):
        models = PropagationModels(
            pathloss=FreeSpacePathlossModel(),
            fast_fading=NoFadingModel(),
            channel_condition=tracking_condition_model,
        )
        engine = RemEngine(
            transmitters=[make_device(), make_device(name="gnb2", position=(80.0, 0.0, 25.0))],
            receiver=receiver,
            models=models,
            grid=small_grid,
            iterations=3,
        )
        engine.run()

        instances = type(tracking_condition_model).instances
        assert engine.sessions_opened == 9 * 3
        assert len(instances) == 1 + 27
        assert len({id(m) for m in instances}) == len(instances)
        assert instances[0] is tracking_condition_model
        assert tracking_condition_model.calls == 0
        assert not tracking_condition_model._conditions
        assert all(m.calls == 2 for m in instances[1:])

    def test_sessions_closed_when_sampling_fails(
        self, make_device, receiver, small_grid, failing_fading_model
    ):
        """Every session opened before a failure is closed, the failing one included."""
        models = PropagationModels(
            pathloss=FreeSpacePathlossModel(),
            fast_fading=failing_fading_model,
            channel_condition=AlwaysLosChannelConditionModel(),
        )
        engine = RemEngine(
            transmitters=[make_device()], receiver=receiver, models=models, grid=small_grid
        )
        with pytest.raises(RuntimeError, match="fading failed"):
            engine.run()

        instances = type(failing_fading_model).instances
        assert engine.sessions_opened == 2
        assert instances[0] is failing_fading_model
        assert len(instances) == 1 + engine.sessions_opened
        assert all(m.cleared for m in instances[1:])
        assert engine.state == RemState.SAMPLING

    def test_caller_devices_untouched(
        self, make_device, receiver, deterministic_models, small_grid
    ):
        tx = make_device(antenna=AntennaArray(num_rows=2, num_columns=2))
        rx_position = receiver.position
        generate_rem([tx], receiver, deterministic_models, small_grid, mode=RemMode.COVERAGE_AREA)

        assert tx.antenna.beam is None
        assert receiver.position == rx_position
        assert receiver.antenna.beam is None


class TestConfiguration:
    @pytest.fixture
    def engine_kwargs(self, make_device, receiver, deterministic_models, small_grid):
        return dict(
            transmitters=[make_device()],
            receiver=receiver,
            models=deterministic_models,
            grid=small_grid,
        )

    @pytest.mark.parametrize("iterations", [0, -2, 1.5])
    def test_invalid_iterations(self, engine_kwargs, iterations):
        with pytest.raises(RemConfigurationError, match="iterations"):
            RemEngine(iterations=iterations, **engine_kwargs).run()

    def test_unknown_serving(self, engine_kwargs):
        with pytest.raises(RemConfigurationError, match="not found"):
            RemEngine(serving="gnb9", **engine_kwargs).run()

    def test_no_transmitters(self, engine_kwargs):
        engine_kwargs["transmitters"] = []
        with pytest.raises(RemConfigurationError):
            RemEngine(**engine_kwargs).configure()

    def test_duplicate_names(self, engine_kwargs, make_device):
        engine_kwargs["transmitters"] = [make_device(), make_device()]
        with pytest.raises(RemConfigurationError, match="unique"):
            RemEngine(**engine_kwargs).configure()

    def test_grid_is_revalidated(self, engine_kwargs):
        engine = RemEngine(**engine_kwargs)
        object.__setattr__(engine.grid, "x_resolution", 0)
        with pytest.raises(InvalidGridSpec):
            engine.configure()

    def test_uninstantiable_model(self, engine_kwargs):
        pathloss = LogDistancePathlossModel()
        pathloss.reference_distance_m = -1.0
        engine_kwargs["models"] = PropagationModels(
            pathloss=pathloss,
            fast_fading=NoFadingModel(),
            channel_condition=AlwaysLosChannelConditionModel(),
        )
        with pytest.raises(ModelInstantiationError):
            RemEngine(**engine_kwargs).run()

    def test_evaluation_error_aborts_run(self, engine_kwargs, make_device):
        engine_kwargs["transmitters"] = [
            make_device(bandwidth_part=BandwidthPart(frequency_hz=28e9, bandwidth_hz=20e6))
        ]
        calls = []
        engine = RemEngine(on_done=calls.append, **engine_kwargs)
        with pytest.raises(EvaluationError):
            engine.run()
        assert engine.state != RemState.DONE
        assert calls == []


class TestStateMachine:
    def test_lifecycle(self, make_device, receiver, deterministic_models, small_grid):
        results = []
        engine = RemEngine(
            transmitters=[make_device()],
            receiver=receiver,
            models=deterministic_models,
            grid=small_grid,
            on_done=results.append,
        )
        assert engine.state == RemState.IDLE

        engine.configure()
        assert engine.state == RemState.CONFIGURING

        points = engine.run()
        assert engine.state == RemState.DONE
        assert engine.elapsed_s is not None
        assert results == [points]
        assert engine.sessions_opened == 9
