"""Тесты для конфигурации."""

import pytest
from pydantic import ValidationError

from showflow.config import CaptureConfig, Config, OutputConfig
from showflow.surface import create_surface_host, manual_launcher


def test_output_config_defaults() -> None:
    """Проверка дефолтных значений OutputConfig."""
    config = OutputConfig()

    assert config.route == "output"
    assert config.launcher == "browser"
    assert config.poll_interval_s == 1.0
    assert config.heartbeat_timeout_s > 0
    assert "FREE" in config.watermark


def test_capture_config_defaults() -> None:
    """По умолчанию курсор скрыт, звук включён."""
    config = CaptureConfig()

    assert config.cursor is False
    assert config.audio is True
    assert config.targets == []


def test_capture_targets_from_dict() -> None:
    config = CaptureConfig(targets=[{"name": "Slides", "device": ":0.1"}])

    assert config.targets[0].name == "Slides"
    assert config.targets[0].device == ":0.1"


def test_output_config_rejects_unknown_launcher() -> None:
    with pytest.raises(ValidationError):
        OutputConfig(launcher="popup")


def test_output_config_rejects_bad_poll_interval() -> None:
    with pytest.raises(ValidationError):
        OutputConfig(poll_interval_s=0)


def test_manual_launcher_host(caplog: pytest.LogCaptureFixture) -> None:
    """В ручном режиме окно вывода открывается всегда, ссылка пишется в лог."""
    config = Config(output=OutputConfig(launcher="manual"), server={"public_url": "http://studio:8000/"})
    host = create_surface_host(config)

    with caplog.at_level("INFO"):
        surface = host.open()

    assert surface is not None
    assert surface.url == f"http://studio:8000/#output/{surface.token}"
    assert surface.url in caplog.text
    assert manual_launcher("http://x") is True
