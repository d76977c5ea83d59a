"""Tests for random search and Bayesian optimization."""

from __future__ import annotations

import threading

import pytest

from evalkit.errors import Cancelled, ConfigurationError
from evalkit.optimization.base import OptimizationResult, OptimizationStep
from evalkit.optimization.bayesian import (
    AcquisitionFunction,
    BayesianOptimizer,
    BayesianOptimizerConfig,
)
from evalkit.optimization.random_search import RandomSearchOptimizer
from evalkit.optimization.search_space import SearchSpace


def _bowl(config):
    return (config["x"] - 5) ** 2 + (config["y"] - 3) ** 2


def _plane_space() -> SearchSpace:
    return SearchSpace().add_continuous("x", 0.0, 10.0).add_continuous("y", 0.0, 10.0)


class TestRandomSearch:
    def test_minimizes_bowl(self):
        opt = RandomSearchOptimizer(_bowl, _plane_space(), maximize=False, seed=42)
        result = opt.optimize(50)

        assert result.best_score < 10.0
        assert len(result.history) == 50
        assert result.iterations == 50
        assert result.best_score == min(step.score for step in result.history)
        assert _bowl(result.best_config) == pytest.approx(result.best_score)
        assert result.metadata["algorithm"] == "random_search"
        assert result.metadata["maximize"] is False
        assert result.metadata["failed_evaluations"] == 0

    def test_maximize_keeps_highest(self):
        opt = RandomSearchOptimizer(lambda c: c["x"], _plane_space(), seed=1)
        result = opt.optimize(20)
        assert result.best_score == max(step.score for step in result.history)

    def test_seed_reproducible(self):
        first = RandomSearchOptimizer(_bowl, _plane_space(), seed=7).optimize(10)
        second = RandomSearchOptimizer(_bowl, _plane_space(), seed=7).optimize(10)
        assert [s.config for s in first.history] == [s.config for s in second.history]

    def test_configs_within_space(self):
        result = RandomSearchOptimizer(_bowl, _plane_space(), seed=3).optimize(30)
        for step in result.history:
            assert 0.0 <= step.config["x"] <= 10.0
            assert 0.0 <= step.config["y"] <= 10.0

    def test_get_history(self):
        opt = RandomSearchOptimizer(_bowl, _plane_space(), seed=0)
        opt.optimize(5)
        history = opt.get_history()
        assert len(history) == 5
        assert all(isinstance(step, OptimizationStep) for step in history)

    def test_zero_iterations(self):
        result = RandomSearchOptimizer(_bowl, _plane_space(), seed=0).optimize(0)
        assert result.history == []
        assert result.best_config == {}
        assert result.get_improvement() == 0.0

    def test_objective_failure_counted(self):
        calls = {"n": 0}

        def sometimes_fails(config):
            calls["n"] += 1
            if calls["n"] % 2 == 0:
                raise RuntimeError("objective crashed")
            return config["x"]

        result = RandomSearchOptimizer(sometimes_fails, _plane_space(), seed=0).optimize(10)
        assert len(result.history) == 5
        assert result.metadata["failed_evaluations"] == 5

    def test_preset_cancel(self):
        event = threading.Event()
        event.set()
        opt = RandomSearchOptimizer(_bowl, _plane_space(), seed=0)

        with pytest.raises(Cancelled) as exc_info:
            opt.optimize(10, cancel_event=event)

        partial = exc_info.value.partial
        assert isinstance(partial, OptimizationResult)
        assert partial.history == []
        assert partial.metadata["cancelled"] is True

    def test_cancel_mid_run_keeps_history(self):
        event = threading.Event()
        calls = {"n": 0}

        def objective(config):
            calls["n"] += 1
            if calls["n"] == 3:
                event.set()
            return config["x"]

        with pytest.raises(Cancelled) as exc_info:
            RandomSearchOptimizer(objective, _plane_space(), seed=0).optimize(10, cancel_event=event)
        assert len(exc_info.value.partial.history) == 3

    def test_missing_objective_rejected(self):
        with pytest.raises(ConfigurationError):
            RandomSearchOptimizer(None, _plane_space())

    def test_empty_space_rejected(self):
        with pytest.raises(ConfigurationError):
            RandomSearchOptimizer(_bowl, SearchSpace())
        with pytest.raises(ConfigurationError):
            RandomSearchOptimizer(_bowl, None)


class TestOptimizationResult:
    def _result(self, scores, best, maximize=True):
        from datetime import datetime, timedelta, timezone

        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        return OptimizationResult(
            best_config={"x": 1},
            best_score=best,
            history=[OptimizationStep(config={"x": i}, score=s) for i, s in enumerate(scores)],
            iterations=len(scores),
            start_time=start,
            end_time=start + timedelta(seconds=2),
            metadata={"maximize": maximize},
        )

    def test_improvement_maximize(self):
        assert self._result([0.2, 0.5, 0.9], 0.9).get_improvement() == pytest.approx(0.7)

    def test_improvement_minimize(self):
        assert self._result([10.0, 4.0, 6.0], 4.0, maximize=False).get_improvement() == pytest.approx(6.0)

    def test_duration(self):
        assert self._result([1.0], 1.0).duration == 2.0

    def test_to_dict(self):
        data = self._result([0.1, 0.3], 0.3).to_dict()
        assert data["best_score"] == 0.3
        assert data["history"][1] == {"config": {"x": 1}, "score": 0.3}
        assert data["duration_s"] == 2.0
        assert data["improvement"] == pytest.approx(0.2)


class TestBayesianConfig:
    def test_valid(self):
        config = BayesianOptimizerConfig(search_space=_plane_space(), objective=_bowl)
        assert config.validate() == []
        assert config.kappa == 2.576
        assert config.n_initial == 5

    def test_collects_all_errors(self):
        config = BayesianOptimizerConfig(
            search_space=SearchSpace(), objective=None, acquisition="bogus", n_initial=0
        )
        errors = config.validate()
        assert len(errors) == 4
        assert any("acquisition" in e for e in errors)

    def test_invalid_config_raises(self):
        with pytest.raises(ConfigurationError):
            BayesianOptimizer(BayesianOptimizerConfig(search_space=_plane_space()))


class TestBayesianOptimizer:
    @pytest.mark.parametrize("acquisition", ["ei", "ucb", "pi"])
    def test_minimizes_bowl(self, acquisition):
        config = BayesianOptimizerConfig(
            search_space=_plane_space(),
            objective=_bowl,
            maximize=False,
            acquisition=acquisition,
            n_initial=5,
            n_candidates=50,
            seed=42,
        )
        result = BayesianOptimizer(config).optimize(30)

        assert len(result.history) == 30
        assert result.best_score == min(step.score for step in result.history)
        assert result.metadata["algorithm"] == "bayesian_optimization"
        assert result.metadata["acquisition"] == acquisition
        assert result.metadata["n_initial"] == 5

    def test_seed_reproducible(self):
        def run():
            config = BayesianOptimizerConfig(
                search_space=_plane_space(), objective=_bowl, n_candidates=20, seed=11
            )
            return [s.config for s in BayesianOptimizer(config).optimize(12).history]

        assert run() == run()

    def test_estimate_without_history(self):
        config = BayesianOptimizerConfig(search_space=_plane_space(), objective=_bowl)
        assert BayesianOptimizer(config).estimate_performance({"x": 1.0, "y": 1.0}) == (0.0, 1.0)

    def test_estimate_uses_similar_neighbors(self):
        config = BayesianOptimizerConfig(search_space=_plane_space(), objective=_bowl)
        opt = BayesianOptimizer(config)
        opt._record({"x": 1.0, "y": 1.0}, 2.0)
        opt._record({"x": 1.5, "y": 1.0}, 4.0)
        opt._record({"x": 9.0, "y": 9.0}, 100.0)

        mu, sigma = opt.estimate_performance({"x": 1.2, "y": 1.0})
        assert mu == pytest.approx(3.0)
        assert sigma == pytest.approx(2 ** 0.5)

    def test_estimate_single_neighbor_has_unit_sigma(self):
        config = BayesianOptimizerConfig(search_space=_plane_space(), objective=_bowl)
        opt = BayesianOptimizer(config)
        opt._record({"x": 1.0, "y": 1.0}, 2.0)
        assert opt.estimate_performance({"x": 1.0, "y": 1.0}) == (2.0, 1.0)

    def test_estimate_floors_zero_spread(self):
        config = BayesianOptimizerConfig(search_space=_plane_space(), objective=_bowl)
        opt = BayesianOptimizer(config)
        opt._record({"x": 1.0, "y": 1.0}, 2.0)
        opt._record({"x": 1.1, "y": 1.0}, 2.0)
        assert opt.estimate_performance({"x": 1.0, "y": 1.0}) == (2.0, 0.1)

    def test_minimize_negates_utility(self):
        config = BayesianOptimizerConfig(search_space=_plane_space(), objective=_bowl, maximize=False)
        opt = BayesianOptimizer(config)
        opt._record({"x": 1.0, "y": 1.0}, 2.0)
        mu, _ = opt.estimate_performance({"x": 1.0, "y": 1.0})
        assert mu == -2.0

    def test_acquisition_functions(self):
        config = BayesianOptimizerConfig(search_space=_plane_space(), objective=_bowl, xi=0.0, kappa=2.0)
        opt = BayesianOptimizer(config)

        assert opt.expected_improvement(1.0, 1.0) == 0.0
        assert opt.upper_confidence_bound(1.0, 0.5) == 2.0

        opt._record({"x": 1.0, "y": 1.0}, 1.0)
        assert opt.probability_of_improvement(1.0, 1.0) == pytest.approx(0.5)
        assert opt.expected_improvement(1.0, 1.0) == pytest.approx(0.398942, abs=1e-6)
        assert opt.expected_improvement(2.0, 1.0) > opt.expected_improvement(1.0, 1.0)
        assert opt.expected_improvement(1.0, 0.0) == 0.0

    def test_acquisition_enum_values(self):
        assert AcquisitionFunction("ei") == AcquisitionFunction.EXPECTED_IMPROVEMENT
        assert AcquisitionFunction.UPPER_CONFIDENCE_BOUND.value == "ucb"
