"""Unit tests for Config and related Pydantic models (monoforge.config).

Tests cover:
- ReadinessConfig / RunnerConfig defaults and validation
- Config defaults, save/load, from_env
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from monoforge.config import Config, ReadinessConfig, RunnerConfig


# ---------------------------------------------------------------------------
# Nested models
# ---------------------------------------------------------------------------


class TestReadinessConfig:
    @pytest.mark.unit
    def test_defaults(self):
        readiness = ReadinessConfig()
        assert readiness.timeout is None
        assert readiness.interval is None
        assert readiness.request_timeout == 5.0

    @pytest.mark.unit
    def test_rejects_non_positive(self):
        with pytest.raises(ValidationError):
            ReadinessConfig(interval=0)


class TestRunnerConfig:
    @pytest.mark.unit
    def test_defaults(self):
        runner = RunnerConfig()
        assert runner.max_workers is None
        assert runner.task_timeout == 600

    @pytest.mark.unit
    def test_max_workers_must_be_positive(self):
        with pytest.raises(ValidationError):
            RunnerConfig(max_workers=0)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


class TestConfig:
    @pytest.mark.unit
    def test_defaults(self):
        config = Config()
        assert config.output_dir == Path(".")
        assert config.overwrite is False
        assert isinstance(config.runner, RunnerConfig)

    @pytest.mark.unit
    def test_save_and_load(self, tmp_path):
        config = Config(
            output_dir=tmp_path / "out",
            overwrite=True,
            runner=RunnerConfig(max_workers=4, readiness=ReadinessConfig(timeout=10)),
        )
        path = config.save(tmp_path / "nested" / "config.json")
        assert path.exists()

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["overwrite"] is True
        assert data["runner"]["max_workers"] == 4

        loaded = Config.load(path)
        assert loaded == config

    @pytest.mark.unit
    def test_from_env_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = Config.from_env()
        assert config == Config()

    @pytest.mark.unit
    def test_from_env_reads_variables(self):
        env = {
            "MONOFORGE_OUTPUT_DIR": "/tmp/acme",
            "MONOFORGE_OVERWRITE": "yes",
            "MONOFORGE_MAX_WORKERS": "3",
            "MONOFORGE_TASK_TIMEOUT": "120",
            "MONOFORGE_READINESS_TIMEOUT": "15",
            "MONOFORGE_READINESS_INTERVAL": "0.5",
        }
        with patch.dict(os.environ, env, clear=True):
            config = Config.from_env()
        assert config.output_dir == Path("/tmp/acme")
        assert config.overwrite is True
        assert config.runner.max_workers == 3
        assert config.runner.task_timeout == 120
        assert config.runner.readiness.timeout == 15.0
        assert config.runner.readiness.interval == 0.5

    @pytest.mark.unit
    @pytest.mark.parametrize("value,expected", [("1", True), ("true", True), ("YES", True), ("0", False), ("off", False)])
    def test_from_env_overwrite_flag(self, value, expected):
        with patch.dict(os.environ, {"MONOFORGE_OVERWRITE": value}, clear=True):
            assert Config.from_env().overwrite is expected

    @pytest.mark.unit
    def test_from_env_rejects_bad_number(self):
        with patch.dict(os.environ, {"MONOFORGE_MAX_WORKERS": "many"}, clear=True):
            with pytest.raises(ValueError):
                Config.from_env()
