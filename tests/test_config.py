"""
Configuration Tests
===================
"""

import pytest
from pydantic import ValidationError

from frame_extractor.config import Settings, load_config


class TestDefaults:

    def test_extractor_defaults(self):
        settings = Settings()

        assert settings.extractor.filename_format == "frame%04i.jpg"
        assert settings.extractor.sec_per_frame == 0.1
        assert settings.extractor.key_lock is False
        assert settings.output.mode == "image"
        assert settings.stream.image_topic == "image"
        assert settings.stream.unlock_topic == "key_topic"
        assert settings.stream.transport == "raw"


class TestValidation:

    def test_bad_template_rejected(self):
        with pytest.raises(ValidationError):
            Settings.model_validate({"extractor": {"filename_format": "frame.jpg"}})

    def test_negative_interval_rejected(self):
        with pytest.raises(ValidationError):
            Settings.model_validate({"extractor": {"sec_per_frame": -1}})

    def test_unknown_transport_rejected(self):
        with pytest.raises(ValidationError):
            Settings.model_validate({"stream": {"transport": "theora"}})

    def test_unknown_output_mode_rejected(self):
        with pytest.raises(ValidationError):
            Settings.model_validate({"output": {"mode": "gif"}})


class TestLoadConfig:

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "extractor:\n"
            "  filename_format: shot%03d.png\n"
            "  sec_per_frame: 2.5\n"
            "  key_lock: true\n"
            "output:\n"
            "  mode: video\n"
        )

        settings = load_config(str(path))

        assert settings.extractor.filename_format == "shot%03d.png"
        assert settings.extractor.sec_per_frame == 2.5
        assert settings.extractor.key_lock is True
        assert settings.output.mode == "video"

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("extractor:\n  sec_per_frame: 2.5\n")
        monkeypatch.setenv("EXTRACT_SEC_PER_FRAME", "0.5")
        monkeypatch.setenv("EXTRACT_KEY_LOCK", "yes")
        monkeypatch.setenv("EXTRACT_FILENAME_FORMAT", "out%02d.raw")
        monkeypatch.setenv("EXTRACT_TRANSPORT", "compressed")

        settings = load_config(str(path))

        assert settings.extractor.sec_per_frame == 0.5
        assert settings.extractor.key_lock is True
        assert settings.extractor.filename_format == "out%02d.raw"
        assert settings.stream.transport == "compressed"

    def test_missing_file_uses_defaults(self, tmp_path):
        settings = load_config(str(tmp_path / "absent.yaml"))

        assert settings.extractor.sec_per_frame == 0.1
