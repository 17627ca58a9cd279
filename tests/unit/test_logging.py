"""Unit tests for the structlog setup and tenant context binding."""

from __future__ import annotations

import io
import json
import logging

import pytest
import structlog

from roomrag.utils.logging import bind_tenant, configure_logging


@pytest.fixture(autouse=True)
def _restore_logging():  # noqa: ANN202
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    logging.getLogger().handlers.clear()


def _events(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


class TestConfigureLogging:
    def test_json_lines_with_level_and_timestamp(self) -> None:
        stream = io.StringIO()
        configure_logging("INFO", json_output=True, stream=stream)

        structlog.get_logger().info("index_started", chunks=3)

        [event] = _events(stream)
        assert event["event"] == "index_started"
        assert event["chunks"] == 3
        assert event["level"] == "info"
        assert "timestamp" in event

    def test_level_filters_events(self) -> None:
        stream = io.StringIO()
        configure_logging("WARNING", json_output=True, stream=stream)

        log = structlog.get_logger()
        log.info("dropped")
        log.warning("kept")

        assert [e["event"] for e in _events(stream)] == ["kept"]

    def test_chatty_libraries_are_held_at_warning(self) -> None:
        configure_logging("INFO", json_output=True, stream=io.StringIO())
        assert logging.getLogger("httpx").level == logging.WARNING

        configure_logging("DEBUG", json_output=True, stream=io.StringIO())
        assert logging.getLogger("httpx").level == logging.DEBUG


class TestBindTenant:
    def test_events_inside_block_carry_tenant_ids(self) -> None:
        stream = io.StringIO()
        configure_logging("INFO", json_output=True, stream=stream)
        log = structlog.get_logger()

        with bind_tenant("org-1", "room-1"):
            log.info("inside")
        log.info("outside")

        inside, outside = _events(stream)
        assert (inside["org_id"], inside["room_id"]) == ("org-1", "room-1")
        assert "org_id" not in outside

    def test_missing_ids_are_not_bound(self) -> None:
        stream = io.StringIO()
        configure_logging("INFO", json_output=True, stream=stream)

        with bind_tenant(org_id="org-1"):
            structlog.get_logger().info("org_only")

        [event] = _events(stream)
        assert event["org_id"] == "org-1"
        assert "room_id" not in event
