"""
Unit tests for loader settings.
"""

import json

import pytest
from pydantic import ValidationError

from tasklink.settings import LoaderSettings


class TestLoaderSettings:

    def test_defaults(self):
        settings = LoaderSettings()
        assert settings.baud_rate == 115200
        assert settings.device is None
        assert settings.dump_path == "elf.dump"

    def test_from_file(self, tmp_path):
        path = tmp_path / "tasklink.json"
        path.write_text(json.dumps({"device": "/dev/ttyACM0", "baud_rate": 921600, "retry": {"max_attempts": 5}}))

        settings = LoaderSettings.from_file(path)

        assert settings.device == "/dev/ttyACM0"
        assert settings.baud_rate == 921600
        assert settings.retry.max_attempts == 5

    def test_rejects_bad_baud_rate(self):
        with pytest.raises(ValidationError):
            LoaderSettings(baud_rate=0)

    def test_overrides_skip_none(self):
        settings = LoaderSettings(device="/dev/ttyUSB0").with_overrides(device=None, baud_rate=9600)
        assert settings.device == "/dev/ttyUSB0"
        assert settings.baud_rate == 9600

    def test_overrides_are_validated(self):
        with pytest.raises(ValidationError):
            LoaderSettings().with_overrides(warmup_delay=-1.0)

    def test_serial_config(self):
        settings = LoaderSettings(baud_rate=9600, warmup_delay=0.5, retry={"max_attempts": 4})
        config = settings.serial_config()
        assert config.baud_rate == 9600
        assert config.connect_delay == 0.5
        assert config.retry.max_attempts == 4
