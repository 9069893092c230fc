"""Unit tests for logging configuration and utilities."""

import json
import logging
import sys
import time
from unittest.mock import patch

import pytest
import structlog

from lorcana_scanner.utils.log import LoggerMixin, configure_logging, get_logger


def _processor_names():
    return [
        p.__name__ if hasattr(p, '__name__') else type(p).__name__
        for p in structlog.get_config()['processors']
    ]


class TestConfigureLogging:
    """Test logging configuration function."""

    def test_configure_logging_sets_up_structlog(self):
        """Test that configure_logging sets up structlog correctly."""
        structlog.reset_defaults()

        configure_logging()

        assert structlog.is_configured()
        names = _processor_names()
        assert any('filter_by_level' in name for name in names)
        assert any('add_logger_name' in name for name in names)
        assert any('add_log_level' in name for name in names)
        assert names[-1] == 'JSONRenderer'

    def test_console_format(self):
        """LOG_FORMAT=console swaps the JSON renderer for the dev console one."""
        structlog.reset_defaults()

        with patch('lorcana_scanner.utils.config.settings') as mock_settings:
            mock_settings.LOG_LEVEL = "INFO"
            mock_settings.LOG_FORMAT = "console"
            configure_logging()

        assert _processor_names()[-1] == 'ConsoleRenderer'
        structlog.reset_defaults()
        configure_logging()

    def test_configure_logging_sets_up_standard_logging(self):
        """Test that configure_logging sets up standard logging correctly."""
        logging.getLogger().handlers.clear()

        with patch('lorcana_scanner.utils.config.settings') as mock_settings:
            mock_settings.LOG_LEVEL = "DEBUG"
            mock_settings.LOG_FORMAT = "json"

            configure_logging()

            root_logger = logging.getLogger()
            assert len(root_logger.handlers) > 0
            assert root_logger.handlers[0].stream == sys.stdout

    def test_configure_logging_handles_invalid_log_level(self):
        """Test that configure_logging handles invalid log levels gracefully."""
        with patch('lorcana_scanner.utils.config.settings') as mock_settings:
            mock_settings.LOG_LEVEL = "INVALID_LEVEL"
            mock_settings.LOG_FORMAT = "json"

            # Falls back to INFO instead of raising
            configure_logging()

    def test_configure_logging_idempotent(self):
        """Test that configure_logging can be called multiple times safely."""
        structlog.reset_defaults()

        configure_logging()
        first_config = structlog.get_config()

        configure_logging()
        second_config = structlog.get_config()

        assert len(first_config['processors']) == len(second_config['processors'])
        assert type(first_config['logger_factory']) == type(second_config['logger_factory'])


class TestGetLogger:
    """Test get_logger function."""

    def test_get_logger_auto_configures_if_needed(self):
        """Test that get_logger auto-configures logging if not configured."""
        structlog.reset_defaults()
        assert not structlog.is_configured()

        logger = get_logger("lorcana_scanner.test")

        assert structlog.is_configured()
        assert logger.name == "lorcana_scanner.test"

    def test_get_logger_without_name(self):
        """Test that get_logger works without a name parameter."""
        structlog.reset_defaults()

        logger = get_logger()

        assert hasattr(logger, 'name')


class TestLoggerMixin:
    """Test LoggerMixin class."""

    class Component(LoggerMixin):
        pass

    def test_logger_mixin_creates_logger(self):
        """Test that LoggerMixin names the logger after the class."""
        instance = self.Component()
        assert instance.logger.name == "Component"

    def test_logger_mixin_caches_logger(self):
        """Test that LoggerMixin caches the logger instance."""
        instance = self.Component()
        assert instance.logger is instance.logger

    def test_logger_mixin_inheritance(self):
        """Test that LoggerMixin works with inheritance."""
        class RecognitionComponent(self.Component):
            pass

        assert RecognitionComponent().logger.name == "RecognitionComponent"

    def test_log_start_creates_context(self):
        """Test that log_start creates proper context."""
        instance = self.Component()

        with patch.object(instance.logger, 'debug') as mock_debug:
            context = instance.log_start("Camera acquisition", camera_index=1)

            assert context['event'] == "Camera acquisition"
            assert context['camera_index'] == 1
            assert 'start_time' in context

            mock_debug.assert_called_once()
            assert mock_debug.call_args[0][0] == "Camera acquisition started"
            assert 'start_time' not in mock_debug.call_args[1]

    def test_log_success_logs_completion_with_duration(self):
        """Test that log_success logs completion with duration."""
        instance = self.Component()
        context = {'event': 'Camera acquisition', 'start_time': time.time() - 1.5, 'camera_index': 0}

        with patch.object(instance.logger, 'info') as mock_info:
            instance.log_success(context, frame_size="1920x1080")

            mock_info.assert_called_once()
            assert mock_info.call_args[0][0] == "Camera acquisition completed"
            kwargs = mock_info.call_args[1]
            assert kwargs['duration_ms'] >= 1400
            assert kwargs['frame_size'] == "1920x1080"
            assert kwargs['camera_index'] == 0

    def test_log_success_without_start_time(self):
        """Test that log_success works without start_time in context."""
        instance = self.Component()

        with patch.object(instance.logger, 'info') as mock_info:
            instance.log_success({'event': 'Catalog load'})
            assert 'duration_ms' not in mock_info.call_args[1]

    def test_log_error_logs_failure_with_duration(self):
        """Test that log_error logs failure with duration and error details."""
        instance = self.Component()
        context = {'event': 'Camera acquisition', 'start_time': time.time() - 0.5}

        with patch.object(instance.logger, 'error') as mock_error:
            instance.log_error(context, RuntimeError("device busy"), cause="busy")

            mock_error.assert_called_once()
            assert mock_error.call_args[0][0] == "Camera acquisition failed"
            kwargs = mock_error.call_args[1]
            assert kwargs['error'] == "device busy"
            assert kwargs['error_type'] == "RuntimeError"
            assert kwargs['cause'] == "busy"
            assert 'duration_ms' in kwargs


class TestLoggingIntegration:
    """Test logging integration scenarios."""

    def test_logging_output_format(self, capsys):
        """Test that logging output is in JSON format."""
        structlog.reset_defaults()
        configure_logging()

        logger = get_logger("test_integration")
        logger.warning("frame dropped", cn="130/204", queue_depth=2)

        output = capsys.readouterr().out.strip()
        if output:
            log_data = json.loads(output.splitlines()[-1])
            assert log_data['event'] == "frame dropped"
            assert log_data['cn'] == "130/204"
            assert log_data['queue_depth'] == 2
            assert 'timestamp' in log_data
            assert log_data['level'] == "warning"

    def test_logging_with_unserialisable_values(self, capsys):
        """Values JSON cannot encode are rendered as strings."""
        structlog.reset_defaults()
        configure_logging()

        logger = get_logger("test_complex")
        logger.warning("complex data", path=object(), items=[1, 2, 3], none=None)

        output = capsys.readouterr().out.strip()
        if output:
            log_data = json.loads(output.splitlines()[-1])
            assert log_data['items'] == [1, 2, 3]
            assert log_data['none'] is None
            assert isinstance(log_data['path'], str)

    def test_logging_with_exceptions(self):
        """Timed operations log and re-raise failures."""
        structlog.reset_defaults()
        configure_logging()

        class Worker(LoggerMixin):
            def run(self):
                context = self.log_start("recognition", frame_id=7)
                try:
                    raise ValueError("engine crashed")
                except ValueError as e:
                    self.log_error(context, e)
                    raise

        with pytest.raises(ValueError):
            Worker().run()
