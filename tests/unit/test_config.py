from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from caststream.config import EncoderSettings, load_config, settings_from_env
from caststream.errors import InvalidConfigurationError


pytestmark = pytest.mark.unit


ROOT_CONFIG = Path(__file__).resolve().parents[2] / "config" / "caststream.yaml"


def test_defaults_favor_low_latency() -> None:
    settings = EncoderSettings()
    assert settings.flush_delay_sec == pytest.approx(0.01)
    assert settings.sync_delay_sec == pytest.approx(0.25)
    assert settings.sync_enabled is True


def test_negative_delay_is_rejected() -> None:
    with pytest.raises(InvalidConfigurationError):
        EncoderSettings(flush_delay_sec=-1)


def test_load_config_reads_encoder_section(tmp_path) -> None:
    path = tmp_path / "caststream.yaml"
    path.write_text(
        textwrap.dedent(
            """
            encoder:
              flush_delay_sec: 0.5
              sync_enabled: false
            """
        ),
        encoding="utf-8",
    )
    settings = load_config(str(path))
    assert settings.flush_delay_sec == 0.5
    assert settings.sync_delay_sec == pytest.approx(0.25)
    assert settings.sync_enabled is False


def test_shipped_config_matches_defaults() -> None:
    assert load_config(str(ROOT_CONFIG)) == EncoderSettings()


def test_load_config_rejects_unknown_keys(tmp_path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("encoder:\n  flush_delay: 1\n", encoding="utf-8")
    with pytest.raises(InvalidConfigurationError, match="flush_delay"):
        load_config(str(path))


def test_load_config_rejects_invalid_yaml(tmp_path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("encoder: [unclosed\n", encoding="utf-8")
    with pytest.raises(InvalidConfigurationError, match="invalid YAML"):
        load_config(str(path))


def test_missing_config_file_is_invalid(tmp_path) -> None:
    with pytest.raises(InvalidConfigurationError, match="unable to read"):
        load_config(str(tmp_path / "absent.yaml"))


def test_env_overrides_file_values(tmp_path) -> None:
    path = tmp_path / "caststream.yaml"
    path.write_text("encoder:\n  flush_delay_sec: 0.5\n  sync_delay_sec: 2\n", encoding="utf-8")
    settings = settings_from_env(
        {
            "CASTSTREAM_CONFIG": str(path),
            "CASTSTREAM_SYNC_DELAY_SEC": "0.75",
            "CASTSTREAM_SYNC_ENABLED": "off",
        }
    )
    assert settings.flush_delay_sec == 0.5
    assert settings.sync_delay_sec == 0.75
    assert settings.sync_enabled is False


def test_empty_env_uses_defaults() -> None:
    assert settings_from_env({}) == EncoderSettings()


@pytest.mark.parametrize(
    "env",
    [
        {"CASTSTREAM_FLUSH_DELAY_SEC": "soon"},
        {"CASTSTREAM_SYNC_DELAY_SEC": "-0.1"},
        {"CASTSTREAM_SYNC_ENABLED": "maybe"},
    ],
)
def test_invalid_env_values_are_rejected(env) -> None:
    with pytest.raises(InvalidConfigurationError):
        settings_from_env(env)
