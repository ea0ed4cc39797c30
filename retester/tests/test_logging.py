"""Tests for log formatting (retester/core/logging.py)."""

from __future__ import annotations

import json
import logging
import sys

from retester.core.logging import DevFormatter, JSONFormatter


def _record(msg: str = "✔ Refreshed %s", *args, exc_info=None, **extra) -> logging.LogRecord:
    record = logging.LogRecord("retester.loop", logging.INFO, __file__, 1, msg, args or ("alice",), exc_info)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_context_fields(self):
        entry = json.loads(JSONFormatter().format(_record(account="alice", iteration=3, snapshot=None)))
        assert entry["message"] == "✔ Refreshed alice"
        assert entry["account"] == "alice"
        assert entry["iteration"] == 3
        assert "snapshot" not in entry
        assert "error" not in entry

    def test_exception_is_formatted(self):
        try:
            raise RuntimeError("rejected")
        except RuntimeError:
            exc_info = sys.exc_info()
        entry = json.loads(JSONFormatter().format(_record(exc_info=exc_info)))
        assert "RuntimeError: rejected" in entry["error"]


class TestDevFormatter:
    def test_iteration_prefix(self):
        line = DevFormatter().format(_record(iteration=2))
        assert "[#2] ✔ Refreshed alice" in line
