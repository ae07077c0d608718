"""Tests for loguru-based extras logging."""

from loguru import logger

from media_extras.config import ExtrasConfig


class TestSetupLogging:
    def setup_method(self):
        logger.remove()

    def teardown_method(self):
        logger.remove()

    def test_setup_creates_log_dir(self, tmp_path, monkeypatch):
        monkeypatch.delenv("LOG_DIR", raising=False)
        log_dir = tmp_path / "logs"
        config = ExtrasConfig(_env_file=None, log_dir=log_dir)
        config.setup_logging()
        assert log_dir.exists()

    def test_setup_adds_file_sink(self, tmp_path, monkeypatch):
        monkeypatch.delenv("LOG_DIR", raising=False)
        log_dir = tmp_path / "logs"
        config = ExtrasConfig(_env_file=None, log_dir=log_dir)
        config.setup_logging()
        logger.bind(stage="test").info("hello from test")
        content = (log_dir / "extras.log").read_text()
        assert "hello from test" in content

    def test_stage_context_in_output(self, tmp_path, monkeypatch):
        monkeypatch.delenv("LOG_DIR", raising=False)
        log_dir = tmp_path / "logs"
        config = ExtrasConfig(_env_file=None, log_dir=log_dir)
        config.setup_logging()
        logger.bind(stage="engine").info("reconciling")
        content = (log_dir / "extras.log").read_text()
        assert "| engine " in content

    def test_default_stage_empty(self, tmp_path, monkeypatch):
        monkeypatch.delenv("LOG_DIR", raising=False)
        log_dir = tmp_path / "logs"
        config = ExtrasConfig(_env_file=None, log_dir=log_dir)
        config.setup_logging()
        logger.info("no stage bound")
        content = (log_dir / "extras.log").read_text()
        assert "no stage bound" in content

    def test_file_sink_captures_debug(self, tmp_path, monkeypatch):
        monkeypatch.delenv("LOG_DIR", raising=False)
        log_dir = tmp_path / "logs"
        config = ExtrasConfig(_env_file=None, log_dir=log_dir, log_level="WARNING")
        config.setup_logging()
        logger.bind(stage="disk").debug("debug detail")
        assert "debug detail" in (log_dir / "extras.log").read_text()
