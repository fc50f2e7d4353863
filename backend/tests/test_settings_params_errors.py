from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

import bikeroute
import bikeroute.params as params_module
from bikeroute.errors import FROZEN_REASON_CODES, ArcNotInRouteError, IlsError, normalize_reason_code
from bikeroute.logging_utils import _parse_level, _resolve_log_dir, get_logger, log_debug, log_event
from bikeroute.params import IlsParams
from bikeroute.settings import Settings, settings


def test_package_imports() -> None:
    assert bikeroute.__name__ == "bikeroute"


def test_settings_normalize_unknown_names_and_cost_floor() -> None:
    cfg = Settings(ILS_ALGORITHM=" ILS_Backtrack ", ILS_MODE="bogus", ILS_MAX_COST=1000, ILS_MIN_COST=5000)

    assert cfg.ils_algorithm == "ils_backtrack"
    assert cfg.ils_mode == "normal"
    assert cfg.ils_min_cost == 0.0

    fallback = Settings(ILS_ALGORITHM="simulated_annealing", ILS_MODE="Incremental_Budget")
    assert fallback.ils_algorithm == "ils_cas"
    assert fallback.ils_mode == "incremental_budget"


def test_settings_read_environment(monkeypatch) -> None:
    monkeypatch.setenv("ILS_MAX_ITERATIONS", "7")
    monkeypatch.setenv("ILS_SEED", "99")

    cfg = Settings()

    assert cfg.ils_max_iterations == 7
    assert cfg.ils_seed == 99


def test_params_from_settings_applies_overrides(monkeypatch) -> None:
    monkeypatch.setattr(params_module.settings, "ils_max_cost", 2_000.0)
    monkeypatch.setattr(params_module.settings, "ils_max_iterations", 12)

    params = IlsParams.from_settings(seed=3, max_iterations=None, mode="fixed_percentage_budget")

    assert params.max_cost == 2_000.0
    assert params.max_iterations == 12
    assert params.seed == 3
    assert params.mode == "fixed_percentage_budget"


def test_params_validation() -> None:
    with pytest.raises(ValidationError):
        IlsParams(max_cost=100.0, min_cost=200.0)
    with pytest.raises(ValidationError):
        IlsParams(max_cost=0.0)
    with pytest.raises(ValidationError):
        IlsParams(max_cost=100.0, mode="greedy")


def test_error_string_details_and_reason_codes() -> None:
    err = ArcNotInRouteError(17, details={"route": "[0] -> [4]"})

    assert isinstance(err, IlsError)
    assert isinstance(err, ValueError)
    assert err.reason_code == "arc_not_in_route"
    assert str(err) == "Arc 17 is not in route"
    assert err.details == {"route": "[0] -> [4]"}

    assert "route_segment_not_found" in FROZEN_REASON_CODES
    assert normalize_reason_code("graph_unavailable") == "graph_unavailable"
    assert normalize_reason_code("whatever") == "search_failed"
    assert normalize_reason_code("", default="node_not_found") == "node_not_found"


def test_logging_helpers_parse_levels_and_emit_event(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(settings, "out_dir", str(tmp_path))

    assert _parse_level("debug") > 0
    assert _parse_level("not_a_level") > 0

    logger1 = get_logger()
    handlers_before = len(logger1.handlers)
    logger2 = get_logger()
    assert logger1 is logger2
    assert len(logger2.handlers) == handlers_before
    assert "bikeroute-stderr" in {handler.get_name() for handler in logger2.handlers}
    assert _resolve_log_dir(str(tmp_path)) == tmp_path / "logs"

    log_event("unit_test_event", start=1, end=2)
    log_debug("unit_test_debug", detail="ignored unless DEBUG")
