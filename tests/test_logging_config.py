"""Tests for the in-memory log buffer behind GET /logs."""
from __future__ import annotations

import logging

import pytest
from conftest import make_destination, make_payload

from feedback_buffer.core.logging_config import clear_log_buffer, get_log_buffer, setup_logging
from feedback_buffer.services.submitter import TerminalFailure


@pytest.fixture(autouse=True)
def log_buffer():
    setup_logging()
    clear_log_buffer()
    yield
    clear_log_buffer()


class TestLogBuffer:
    def test_newest_first_with_service_name(self):
        log = logging.getLogger("feedback_buffer.tests")
        log.info("first entry")
        log.info("second entry")

        entries = get_log_buffer(limit=2)
        assert [entry["message"] for entry in entries] == ["second entry", "first entry"]
        assert entries[0]["level"] == "INFO"
        assert entries[0]["service"]
        assert entries[0]["time"].endswith("Z")

    def test_min_level_filter(self):
        log = logging.getLogger("feedback_buffer.tests")
        log.info("routine")
        log.warning("worth a look")

        messages = [entry["message"] for entry in get_log_buffer(min_level="warning")]
        assert messages == ["worth a look"]

    async def test_report_history_by_record_id(self, coordinator, probe, submitter):
        probe.set_online(False)
        record = await coordinator.buffer_and_trigger(make_destination(), make_payload())
        other = await coordinator.buffer_and_trigger(make_destination(), make_payload("Other"))
        await coordinator.wait_for_background()

        probe.set_online(True)
        submitter.set_outcomes(TerminalFailure(reason="Invalid API key"))
        await coordinator.run_sync_pass()

        history = get_log_buffer(record_id=record.id)
        assert history
        assert all(entry["record_id"] == record.id for entry in history)
        assert any("rejected" in entry["message"] for entry in history)
        assert all(other.id not in entry["message"] for entry in history)
