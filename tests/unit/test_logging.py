"""Tests for structured JSON logging."""

import json
import logging
import sys

from istio_operator.logging import StructuredJSONFormatter, StructuredLogger


def make_record(level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord("istio-operator", level, __file__, 1, "Chart installed", None, exc_info)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredJSONFormatter:
    def test_structured_fields(self):
        record = make_record(
            controller="IstioRevision",
            resource="istio-system/default",
            uid="abc",
            event="install",
            reason="ChartInstalled",
            chart="istiod",
        )

        entry = json.loads(StructuredJSONFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "istio-operator"
        assert entry["message"] == "Chart installed"
        assert entry["controller"] == "IstioRevision"
        assert entry["resource"] == "istio-system/default"
        assert entry["reason"] == "ChartInstalled"
        assert entry["chart"] == "istiod"
        assert "timestamp" in entry
        assert "pathname" not in entry

    def test_exception_is_rendered(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record(logging.ERROR, sys.exc_info())

        entry = json.loads(StructuredJSONFormatter().format(record))

        assert "RuntimeError: boom" in entry["exception"]

    def test_non_serializable_values_are_stringified(self):
        entry = json.loads(StructuredJSONFormatter().format(make_record(values=object())))

        assert isinstance(entry["values"], str)


class TestStructuredLogger:
    def test_none_fields_are_dropped(self, caplog):
        with caplog.at_level(logging.INFO, logger="istio-operator"):
            StructuredLogger("istio-operator").info("Reconciled", resource="ns/name", uid=None)

        record = caplog.records[-1]
        assert record.resource == "ns/name"
        assert not hasattr(record, "uid")

    def test_levels(self, caplog):
        logger = StructuredLogger("istio-operator")

        with caplog.at_level(logging.DEBUG, logger="istio-operator"):
            logger.debug("d")
            logger.warning("w")
            logger.error("e")

        assert [r.levelname for r in caplog.records] == ["DEBUG", "WARNING", "ERROR"]
