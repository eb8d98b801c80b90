import json
import logging

import pytest
import yaml

from clinscribe.config.settings import SecurityConfig, Settings
from clinscribe.providers.capture.mock_device import MockCaptureDevice
from clinscribe.security.audit_logger import AuditLogger
from clinscribe.services.capture_service import create_capture_device, create_segment_capture


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("CLINSCRIBE_CONFIG", "CLINSCRIBE_PROVIDER", "GEMINI_API_KEY", "LOG_FILE"):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings.from_dict({})

    assert settings.capture.segment_interval_ms == 20000
    assert settings.capture.policy == "delta"
    assert settings.reasoning.model == "gemini-2.5-flash"
    assert settings.pipeline.context_max_utterances == 6


def test_load_from_yaml(tmp_path, caplog):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({
        "capture": {"segment_interval_ms": 5000, "policy": "cumulative", "bogus": 1},
        "reasoning": {"provider": "mock"},
        "log_level": "DEBUG",
    }))

    with caplog.at_level(logging.WARNING):
        settings = Settings(str(path))

    assert settings.capture.segment_interval_ms == 5000
    assert settings.capture.policy == "cumulative"
    assert settings.reasoning.provider == "mock"
    assert settings.log_level == "DEBUG"
    assert "capture.bogus" in caplog.text


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"reasoning": {"provider": "gemini"}}))
    monkeypatch.setenv("CLINSCRIBE_PROVIDER", "mock")
    monkeypatch.setenv("GEMINI_API_KEY", "secret")

    settings = Settings(str(path))

    assert settings.reasoning.provider == "mock"
    assert settings.gemini_api_key == "secret"


def test_missing_file_keeps_defaults(tmp_path):
    settings = Settings(str(tmp_path / "nope.yaml"))

    assert settings.capture.policy == "delta"


def test_validate_reports_problems():
    settings = Settings.from_dict({
        "reasoning": {"provider": "gemini"},
        "capture": {"policy": "sliding", "segment_interval_ms": 0, "backend": "alsa"},
        "pipeline": {"max_latin_ratio": 1.5},
    })

    errors = settings.validate()

    assert len(errors) == 5
    assert any("GEMINI_API_KEY" in e for e in errors)


def test_validate_mock_setup_is_clean():
    settings = Settings.from_dict({"reasoning": {"provider": "mock"}, "capture": {"backend": "mock"}})

    assert settings.validate() == []


def test_save_config_round_trip(tmp_path):
    settings = Settings.from_dict({"capture": {"segment_interval_ms": 7000}})
    path = tmp_path / "out" / "config.yaml"

    settings.save_config(str(path))

    assert Settings(str(path)).capture.segment_interval_ms == 7000


def test_capture_factory():
    settings = Settings.from_dict({"capture": {"backend": "mock", "sample_rate": 8000}})

    capture = create_segment_capture(settings)

    assert isinstance(capture.device, MockCaptureDevice)
    assert capture.constraints.sample_rate == 8000


def test_capture_factory_rejects_unknown_backend():
    settings = Settings.from_dict({"capture": {"backend": "alsa"}})

    with pytest.raises(ValueError):
        create_capture_device(settings)


def test_audit_entries_are_json_without_identifiers(tmp_path):
    path = tmp_path / "audit.log"
    audit = AuditLogger(SecurityConfig(enable_audit_logging=True, audit_log_path=str(path)))

    entry = audit.log_encounter_start("encounter-123", "MBBS", "Hindi")
    audit.log_stage_degraded("prescription", "fail_visible", "timeout")
    for handler in audit.logger.handlers:
        handler.flush()

    assert entry["event_type"] == "encounter_start"
    assert "encounter-123" not in json.dumps(entry)
    assert len(entry["encounter_id_hash"]) == 16
    assert '"stage": "prescription"' in path.read_text()

    for handler in list(audit.logger.handlers):
        audit.logger.removeHandler(handler)
        handler.close()
