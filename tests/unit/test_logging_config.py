"""Tests for logging_config module."""

import asyncio
import json
import logging
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, Mock

from pm_insights.config import load_config
from pm_insights.ml.insights import AnalysisKind, InsightOrchestrator
from pm_insights.ml.oracle import ExternalOracleError
from pm_insights.transform.normalizer import DataNormalizer
from pm_insights.utils.logging_config import (
    JSONL_LOG_NAME,
    JsonlHandler,
    LoggingConfig,
    RedactingFormatter,
    RedactionConfig,
    setup_logging,
)

OPENAI_KEY = "sk-proj-" + "a1B2c3D4" * 6


class TestRedactionConfig:
    """Tests for RedactionConfig."""

    def test_should_redact_key_true(self) -> None:
        config = RedactionConfig()
        assert config.should_redact_key("api_key")
        assert config.should_redact_key("OPENAI_API_KEY")
        assert config.should_redact_key("auth_header")
        assert config.should_redact_key("password")

    def test_should_redact_key_false(self) -> None:
        config = RedactionConfig()
        assert not config.should_redact_key("model")
        assert not config.should_redact_key("username")
        assert not config.should_redact_key("project")

    def test_redact_value_with_openai_key(self) -> None:
        config = RedactionConfig()
        result = config.redact_value(f"Using key: {OPENAI_KEY}")
        assert "***REDACTED***" in result
        assert OPENAI_KEY not in result

    def test_redact_value_with_bearer(self) -> None:
        config = RedactionConfig()
        result = config.redact_value(
            "Auth: Bearer eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9"
        )
        assert "***REDACTED***" in result

    def test_redact_value_safe_string(self) -> None:
        config = RedactionConfig()
        safe = "Just a normal log message about sk-short"
        assert config.redact_value(safe) == safe


class TestRedactingFormatter:
    """Tests for RedactingFormatter."""

    def test_format_redacts_message(self) -> None:
        formatter = RedactingFormatter("%(message)s")
        record = logging.LogRecord(
            name="test",
            level=logging.INFO,
            pathname="",
            lineno=0,
            msg="key: %s",
            args=(OPENAI_KEY,),
            exc_info=None,
        )
        result = formatter.format(record)
        assert "***REDACTED***" in result
        assert OPENAI_KEY not in result


class TestJsonlHandler:
    """Tests for JsonlHandler."""

    def test_emit_writes_jsonl(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            log_file = Path(tmpdir) / "test.log.jsonl"
            handler = JsonlHandler(log_file)

            record = logging.LogRecord(
                name="test.logger",
                level=logging.INFO,
                pathname="",
                lineno=0,
                msg="Test message",
                args=(),
                exc_info=None,
            )
            handler.emit(record)

            assert log_file.exists()
            entry = json.loads(log_file.read_text().splitlines()[0])
            assert entry["message"] == "Test message"
            assert entry["logger"] == "test.logger"
            assert entry["level"] == "INFO"

    def test_emit_redacts_secrets(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            log_file = Path(tmpdir) / "test.log.jsonl"
            handler = JsonlHandler(log_file)

            record = logging.LogRecord(
                name="test",
                level=logging.INFO,
                pathname="",
                lineno=0,
                msg=f"Using key: {OPENAI_KEY}",
                args=(),
                exc_info=None,
            )
            handler.emit(record)

            content = log_file.read_text()
            assert "***REDACTED***" in content
            assert OPENAI_KEY not in content

    def test_emit_redacts_sensitive_extra(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            log_file = Path(tmpdir) / "test.log.jsonl"
            handler = JsonlHandler(log_file)

            record = logging.LogRecord(
                name="test",
                level=logging.INFO,
                pathname="",
                lineno=0,
                msg="Oracle configured",
                args=(),
                exc_info=None,
            )
            record.api_key = "plain-secret"
            record.model = "gpt-4"
            handler.emit(record)

            entry = json.loads(log_file.read_text().splitlines()[0])
            assert entry["extra"] == {"api_key": "***REDACTED***", "model": "gpt-4"}


class TestLoggingConfig:
    """Tests for LoggingConfig."""

    def test_defaults(self) -> None:
        config = LoggingConfig()
        assert config.format == "console"
        assert config.log_file is None


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_console_logging(self) -> None:
        config = LoggingConfig(format="console")
        setup_logging(config)
        root = logging.getLogger()
        assert len(root.handlers) >= 1
        assert logging.getLogger("openai").level == logging.WARNING

    def test_setup_jsonl_logging(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config = LoggingConfig(
                format="jsonl",
                artifacts_dir=Path(tmpdir),
            )
            setup_logging(config)
            root = logging.getLogger()
            jsonl = [h for h in root.handlers if isinstance(h, JsonlHandler)]
            assert len(jsonl) == 1
            assert jsonl[0].log_file == Path(tmpdir) / JSONL_LOG_NAME
            setup_logging(LoggingConfig())


class TestOracleRedaction:
    """Secrets reaching the logs through oracle traffic are scrubbed."""

    def test_key_inside_prompt_artifact(self, raw_projects) -> None:
        """A key pasted into a task title is redacted; the project data is not."""
        raw_projects[0]["tasks"][0]["title"] = f"Rotate {OPENAI_KEY}"
        dataset = DataNormalizer().normalize(raw_projects)
        artifact = InsightOrchestrator(oracle=Mock()).prompt_artifact(
            AnalysisKind.INSIGHTS, dataset
        )

        result = RedactionConfig().redact_value(json.dumps(artifact))
        assert OPENAI_KEY not in result
        assert "Website Redesign" in result

    def test_oracle_failure_warning_redacted(self, raw_projects) -> None:
        """An SDK error echoing the key is logged without it."""
        oracle = Mock()
        oracle.complete = AsyncMock(
            side_effect=ExternalOracleError(f"Incorrect API key provided: {OPENAI_KEY}")
        )
        orchestrator = InsightOrchestrator(oracle=oracle)
        dataset = DataNormalizer().normalize(raw_projects)

        with tempfile.TemporaryDirectory() as tmpdir:
            log_file = Path(tmpdir) / JSONL_LOG_NAME
            setup_logging(LoggingConfig(format="jsonl", log_file=log_file))
            try:
                asyncio.run(orchestrator.generate_recommendations(dataset))
                for handler in logging.getLogger().handlers:
                    handler.flush()
                content = log_file.read_text()
            finally:
                setup_logging(LoggingConfig())

        assert "using fallback" in content
        assert OPENAI_KEY not in content

    def test_config_summary_in_jsonl(self, monkeypatch) -> None:
        """The configuration summary never writes the key to the artifact log."""
        monkeypatch.setenv("OPENAI_API_KEY", OPENAI_KEY)
        config = load_config()

        with tempfile.TemporaryDirectory() as tmpdir:
            log_file = Path(tmpdir) / JSONL_LOG_NAME
            setup_logging(LoggingConfig(format="jsonl", log_file=log_file))
            try:
                config.log_summary()
                content = log_file.read_text()
            finally:
                setup_logging(LoggingConfig())

        assert "Oracle API key: set" in content
        assert OPENAI_KEY not in content
