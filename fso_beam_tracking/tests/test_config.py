"""
Unit tests for tracker configuration and error codes.
"""

import json

import pytest
import numpy as np
from fso_beam_tracking.core.errors import (
    ConvergenceError,
    ErrorCode,
    InvalidParameterError,
    NotInitializedError,
    OutOfRangeError,
    TrackerMemoryError,
    error_code_for,
)
from fso_beam_tracking.core.tracking.config import TrackerConfig, load_tracker_config


class TestErrorCodes:
    """The numeric codes are shared with the radio stack and must not move."""

    def test_values(self):
        assert ErrorCode.SUCCESS == 0
        assert ErrorCode.INVALID_PARAM == -1
        assert ErrorCode.MEMORY == -2
        assert ErrorCode.NOT_INITIALIZED == -3
        assert ErrorCode.CONVERGENCE == -4
        assert ErrorCode.OUT_OF_RANGE == -7

    @pytest.mark.parametrize("exc, code", [
        (InvalidParameterError("x"), ErrorCode.INVALID_PARAM),
        (OutOfRangeError("x"), ErrorCode.OUT_OF_RANGE),
        (TrackerMemoryError("x"), ErrorCode.MEMORY),
        (NotInitializedError("x"), ErrorCode.NOT_INITIALIZED),
        (ConvergenceError("x"), ErrorCode.CONVERGENCE),
        (MemoryError(), ErrorCode.MEMORY),
        (TypeError(), ErrorCode.INVALID_PARAM),
    ])
    def test_error_code_for(self, exc, code):
        assert error_code_for(exc) == code

    def test_builtin_bases(self):
        assert issubclass(InvalidParameterError, ValueError)
        assert issubclass(OutOfRangeError, LookupError)
        assert issubclass(ConvergenceError, RuntimeError)

    def test_message_carries_code_name(self):
        assert str(ConvergenceError("no peak")) == "[CONVERGENCE] no peak"


class TestTrackerConfig:
    """Test defaults, validation and loading."""

    def test_defaults(self):
        config = TrackerConfig()
        config.validate()

        assert config.step_size == 0.01
        assert config.momentum == 0.9
        assert (config.step_min, config.step_max) == (0.001, 0.1)
        assert config.step_adapt_factor == 1.1
        assert config.convergence_threshold == 10
        assert config.signal_threshold == 0.1
        assert (config.pid_kp, config.pid_ki, config.pid_kd) == (1.0, 0.1, 0.05)
        assert config.pid_enabled

    def test_pid_disabled_with_zero_gains(self):
        assert not TrackerConfig(pid_kp=0.0, pid_ki=0.0, pid_kd=0.0).pid_enabled

    @pytest.mark.parametrize("overrides", [
        {'map_az_max': -0.2},
        {'map_el_resolution': 0.0},
        {'step_min': 0.0},
        {'step_size': 0.5},
        {'step_adapt_factor': 0.9},
        {'step_adapt_factor': 1.0},
        {'momentum': 1.0},
        {'momentum': -0.1},
        {'convergence_threshold': 0},
        {'signal_threshold': 1.5},
        {'pid_update_rate': 0.0},
        {'pid_integral_min': 2.0},
        {'initial_azimuth': np.nan},
    ])
    def test_validation(self, overrides):
        with pytest.raises(InvalidParameterError):
            TrackerConfig(**overrides).validate()

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(InvalidParameterError):
            TrackerConfig.from_dict({'step_sise': 0.01})

    def test_dict_round_trip(self):
        config = TrackerConfig(step_size=0.005, signal_threshold=0.3)
        assert TrackerConfig.from_dict(config.to_dict()) == config

    def test_load_json(self, tmp_path):
        path = tmp_path / 'tracker.json'
        path.write_text(json.dumps({'tracker': {'signal_threshold': 0.4, 'momentum': 0.5}}))

        config = load_tracker_config(path)
        assert config.signal_threshold == 0.4
        assert config.momentum == 0.5

    def test_load_flat_json(self, tmp_path):
        path = tmp_path / 'tracker.json'
        path.write_text(json.dumps({'step_size': 0.02}))
        assert load_tracker_config(str(path)).step_size == 0.02

    def test_load_invalid_json(self, tmp_path):
        path = tmp_path / 'broken.json'
        path.write_text("{not json")
        with pytest.raises(InvalidParameterError):
            load_tracker_config(path)

    def test_load_validates(self, tmp_path):
        path = tmp_path / 'bad.json'
        path.write_text(json.dumps({'signal_threshold': -1.0}))
        with pytest.raises(InvalidParameterError):
            load_tracker_config(path)
