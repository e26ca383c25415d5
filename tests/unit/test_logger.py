"""
Unit tests for logging setup.
"""

import json

import pytest
import structlog

from hlclient.utils.logger import EventType, log_system_event, setup_logger


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


@pytest.mark.unit
def test_json_log_file(tmp_path):
    """Test JSON logs land in a dated file with the event fields."""
    logger = setup_logger(log_level="INFO", log_dir=str(tmp_path), log_format="json")

    log_system_event(logger, EventType.STARTUP, "Client started", network="testnet")
    logger.debug("not written")

    files = list(tmp_path.glob("hlclient_*.log"))
    assert len(files) == 1

    lines = files[0].read_text().strip().splitlines()
    assert len(lines) == 1

    record = json.loads(lines[0])
    assert record["event"] == "Client started"
    assert record["event_type"] == "STARTUP"
    assert record["network"] == "testnet"
    assert record["service"] == "hlclient"
    assert record["level"] == "info"
