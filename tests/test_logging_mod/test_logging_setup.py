"""Tests for acmesites.logging: formatters, context filter and setup."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from acmesites.config.settings import LoggingSettings
from acmesites.logging import configure_logging, workflow_context
from acmesites.logging.setup import StructuredFormatter, WorkflowContextFilter


def _record(msg="hello", **extra):
    record = logging.LogRecord("acmesites.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestWorkflowContextFilter:
    def test_defaults_outside_context(self):
        record = _record()
        WorkflowContextFilter().filter(record)
        assert (record.workflow_id, record.site) == ("-", "-")

    def test_inside_context(self):
        record = _record()
        with workflow_context("wf1", "rg/app/production"):
            WorkflowContextFilter().filter(record)
        assert (record.workflow_id, record.site) == ("wf1", "rg/app/production")

    def test_context_restored(self):
        with workflow_context("outer", "s1"):
            with workflow_context("inner", "s2"):
                pass
            record = _record()
            WorkflowContextFilter().filter(record)
        assert record.workflow_id == "outer"

    def test_explicit_extra_wins(self):
        record = _record(workflow_id="explicit")
        with workflow_context("wf1", "s"):
            WorkflowContextFilter().filter(record)
        assert record.workflow_id == "explicit"


class TestStructuredFormatter:
    def test_fields(self):
        record = _record("step %s", workflow_id="wf1", site="-", to_step="deployed")
        record.args = ("done",)
        data = json.loads(StructuredFormatter().format(record))
        assert data["message"] == "step done"
        assert data["level"] == "INFO"
        assert data["logger"] == "acmesites.test"
        assert data["workflow_id"] == "wf1"
        assert "site" not in data
        assert data["to_step"] == "deployed"

    def test_exception(self):
        try:
            raise RuntimeError("kaboom")
        except RuntimeError:
            record = logging.LogRecord(
                "acmesites.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )
        data = json.loads(StructuredFormatter().format(record))
        assert "RuntimeError: kaboom" in data["exception"]


class TestConfigureLogging:
    def test_json_output(self, capsys):
        logger = configure_logging(LoggingSettings(level="INFO", format="json"))
        with workflow_context("wf1", "rg/app/production"):
            logging.getLogger("acmesites.services.orchestrator").info("Deployed")

        line = capsys.readouterr().err.strip().splitlines()[-1]
        data = json.loads(line)
        assert data["message"] == "Deployed"
        assert data["workflow_id"] == "wf1"
        assert data["site"] == "rg/app/production"
        assert logger.propagate is False

    def test_text_output_and_level(self, capsys):
        configure_logging(LoggingSettings(level="WARNING", format="text"))
        log = logging.getLogger("acmesites.dns.azure")
        log.info("hidden")
        log.warning("shown")

        err = capsys.readouterr().err
        assert "hidden" not in err
        assert "WARNING" in err
        assert "[-] - acmesites.dns.azure: shown" in err

    @pytest.mark.parametrize("level", ["INFO", "ERROR"])
    def test_debug_flag_overrides(self, level):
        logger = configure_logging(LoggingSettings(level=level, format="text"), debug=True)
        assert logger.level == logging.DEBUG

    def test_handlers_replaced(self):
        settings = LoggingSettings(level="INFO", format="text")
        configure_logging(settings)
        logger = configure_logging(settings)
        assert len(logger.handlers) == 1
