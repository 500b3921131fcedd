"""Tests for the node logger and redaction helpers."""

import json
from unittest.mock import MagicMock

import pytest

from hooknodes.observability.logger import LoggerConfig, LogLevel, NodeLogger, create_logger
from hooknodes.observability.redaction import (
    mask_sensitive_data,
    mask_sensitive_headers,
    mask_url,
    mask_value,
)


@pytest.fixture
def node_logger():
    """Logger that only buffers."""
    return NodeLogger("Test", LoggerConfig(level=LogLevel.DEBUG, enable_console=False))


class TestRedaction:
    """Tests for masking helpers."""

    def test_mask_value(self):
        """Test long strings keep their edges, short values are hidden."""
        assert mask_value("abcdefghijkl") == "abcd****ijkl"
        assert mask_value("short") == "****"
        assert mask_value(12345) == "****"

    def test_mask_sensitive_data_nested(self):
        """Test nested sensitive keys are masked without touching the input."""
        data = {
            "webhookUrl": "https://example.com/hook?key=abcdefghijkl",
            "nested": {"access_token": "tok", "plain": "visible"},
            "items": [{"password": "p4ssw0rd-long"}],
        }

        masked = mask_sensitive_data(data)

        assert masked["webhookUrl"] == "http****ijkl"
        assert masked["nested"]["access_token"] == "****"
        assert masked["nested"]["plain"] == "visible"
        assert masked["items"][0]["password"] == "p4ss****long"
        assert data["nested"]["access_token"] == "tok"

    def test_mask_url(self, webhook_url):
        """Test the webhook key is masked and the rest kept."""
        masked = mask_url(webhook_url)

        assert masked.startswith("https://qyapi.weixin.qq.com/cgi-bin/webhook/send?key=")
        assert "693a****5aaa" in masked
        assert "0ec2sifa" not in masked

    def test_mask_url_without_key(self):
        """Test URLs without a key are returned unchanged."""
        assert mask_url("https://example.com/path?a=1") == "https://example.com/path?a=1"

    def test_mask_url_unparseable(self):
        """Test non-URLs are fully masked."""
        assert mask_url("not a url") == "****"

    def test_mask_sensitive_headers(self):
        """Test credential headers are masked case-insensitively."""
        headers = mask_sensitive_headers({
            "Authorization": "Bearer secret",
            "X-Api-Key": "k",
            "Content-Type": "application/json",
        })

        assert headers["Authorization"] == "****"
        assert headers["X-Api-Key"] == "****"
        assert headers["Content-Type"] == "application/json"


class TestNodeLogger:
    """Tests for buffered logging."""

    def test_level_filtering(self):
        """Test entries below the minimum level are dropped."""
        logger = NodeLogger("Test", LoggerConfig(level=LogLevel.WARN, enable_console=False))
        logger.debug("debug")
        logger.info("info")
        logger.warn("warn")
        logger.error("error")

        assert [entry.message for entry in logger.get_log_entries()] == ["warn", "error"]

    def test_none_level_disables_logging(self):
        """Test NONE suppresses everything."""
        logger = NodeLogger("Test", LoggerConfig(level=LogLevel.NONE, enable_console=False))
        logger.error("error")

        assert logger.get_log_entries() == []

    def test_buffer_evicts_oldest(self):
        """Test the buffer keeps the newest entries."""
        logger = NodeLogger(
            "Test",
            LoggerConfig(level=LogLevel.DEBUG, enable_console=False, max_log_entries=3),
        )
        for i in range(5):
            logger.info(f"entry {i}")

        assert [entry.message for entry in logger.get_log_entries()] == ["entry 2", "entry 3", "entry 4"]

    def test_masks_data(self, node_logger):
        """Test payloads are masked before storage."""
        node_logger.info("Sending", {"secret": "abcdefghijkl", "count": 1})

        entry = node_logger.get_log_entries()[0]
        assert entry.data == {"secret": "abcd****ijkl", "count": 1}
        assert entry.context == "Test"
        assert entry.level == "INFO"

    def test_masking_can_be_disabled(self):
        """Test raw data is kept when masking is off."""
        logger = NodeLogger(
            "Test",
            LoggerConfig(level=LogLevel.DEBUG, enable_console=False, mask_sensitive_data=False),
        )
        logger.info("Sending", {"secret": "abcdefghijkl"})

        assert logger.get_log_entries()[0].data == {"secret": "abcdefghijkl"}

    def test_execution_context_stamping(self, node_logger):
        """Test ids are stamped on earlier and later entries."""
        node_logger.info("before")
        node_logger.set_execution_context("exec-1", "node-1", "wf-1")
        node_logger.info("after")

        for entry in node_logger.get_log_entries():
            assert entry.execution_id == "exec-1"
            assert entry.node_id == "node-1"
            assert entry.workflow_id == "wf-1"

    def test_existing_ids_are_kept(self, node_logger):
        """Test entries that already carry ids are not restamped."""
        node_logger.set_execution_context("exec-1", "node-1", "wf-1")
        node_logger.info("first")
        node_logger.set_execution_context("exec-2", "node-2", "wf-2")

        assert node_logger.get_log_entries()[0].execution_id == "exec-1"

    def test_log_execution_end(self, node_logger):
        """Test success and failure summaries."""
        node_logger.log_execution_end("exec-1", True, 1.5, {"records": 2})
        node_logger.log_execution_end("exec-1", False, 0.25, error=ValueError("bad"))

        success, failure = node_logger.get_log_entries()
        assert success.message == "Node execution succeeded"
        assert success.data["duration_ms"] == 1500
        assert failure.level == "ERROR"
        assert failure.data["error"] == {"name": "ValueError", "message": "bad"}

    def test_log_api_request_masks(self, node_logger, webhook_url):
        """Test request logs never contain the webhook key."""
        node_logger.log_api_request(
            "POST",
            webhook_url,
            {"Authorization": "Bearer abc"},
            {"msgtype": "text"},
        )

        data = node_logger.get_log_entries()[0].data
        assert "0ec2sifa" not in json.dumps(data)
        assert data["headers"]["Authorization"] == "****"
        assert data["body_size"] > 0

    def test_log_retry(self, node_logger):
        """Test retry entries are warnings with delay in ms."""
        node_logger.log_retry(1, 3, 1.25, RuntimeError("timeout"))

        entry = node_logger.get_log_entries()[0]
        assert entry.level == "WARN"
        assert entry.data["delay_ms"] == 1250

    def test_log_validation(self, node_logger):
        """Test validation results pick their level."""
        node_logger.log_validation("text", True)
        node_logger.log_validation("text", False, ["bad"])

        passed, failed = node_logger.get_log_entries()
        assert passed.level == "DEBUG"
        assert failed.level == "WARN"
        assert failed.data["errors"] == ["bad"]

    def test_stats_and_filtering(self, node_logger):
        """Test per-level counts and filtering."""
        node_logger.info("a")
        node_logger.info("b")
        node_logger.error("c")

        stats = node_logger.get_log_stats()
        assert stats["total_entries"] == 3
        assert stats["entries_by_level"] == {"INFO": 2, "ERROR": 1}
        assert stats["oldest_entry"] <= stats["newest_entry"]
        assert len(node_logger.get_log_entries_by_level(LogLevel.ERROR)) == 1

        node_logger.clear_log_entries()
        assert node_logger.get_log_stats()["total_entries"] == 0
        assert node_logger.get_log_stats()["oldest_entry"] is None

    def test_set_log_level(self, node_logger):
        """Test the level can be raised at runtime."""
        node_logger.set_log_level(LogLevel.ERROR)
        node_logger.warn("ignored")

        assert node_logger.get_log_entries() == []

    def test_create_child(self, node_logger):
        """Test children get a prefixed context and their own buffer."""
        child = node_logger.create_child("ApiClient")
        child.info("child entry")

        assert child.context == "Test:ApiClient"
        assert child.config is not node_logger.config
        assert child.config.level == node_logger.config.level
        assert node_logger.get_log_entries() == []

    def test_export_json(self, node_logger):
        """Test JSON export carries config, stats and entries."""
        node_logger.info("hello", {"a": 1})

        exported = json.loads(node_logger.export_logs_as_json())
        assert exported["config"]["level"] == "DEBUG"
        assert exported["stats"]["total_entries"] == 1
        assert exported["entries"][0]["message"] == "hello"

    def test_export_text(self, node_logger):
        """Test text export has one formatted line per entry."""
        node_logger.info("hello", {"a": 1})
        node_logger.warn("bye")

        lines = node_logger.export_logs_as_text().split("\n")
        assert len(lines) == 2
        assert lines[0].endswith('[INFO] [Test] hello {"a": 1}')
        assert lines[1].endswith("[WARN] [Test] bye")

    def test_create_logger_default_context(self):
        """Test the factory default context."""
        assert create_logger().context == "WeworkBot"

    def test_console_mirroring(self):
        """Test entries are mirrored to structlog at the matching level."""
        logger = NodeLogger("Test", LoggerConfig(level=LogLevel.DEBUG))
        console = MagicMock()
        logger._console = console

        logger.warn("slow response", {"token": "abcdefghijkl"})
        logger.error("failed")

        console.warning.assert_called_once_with("slow response", data={"token": "abcd****ijkl"})
        console.error.assert_called_once_with("failed")
