"""Tests for the structlog processors."""

import pytest

from recruitment.core.logging import SERVICE_NAME, add_correlation_id, add_service_name, unwrap_enums
from recruitment.schemas.timeline import PhaseStatus, RoleType

pytestmark = pytest.mark.unit


def test_unwrap_enums_logs_values():
    event = unwrap_enums(None, "info", {"event": "x", "old_status": PhaseStatus.ACTIVE, "role": RoleType.CREW, "n": 3})

    assert event == {"event": "x", "old_status": "active", "role": "crew", "n": 3}


def test_service_name_added_once():
    assert add_service_name(None, "info", {"event": "x"})["service"] == SERVICE_NAME
    assert add_service_name(None, "info", {"event": "x", "service": "other"})["service"] == "other"


def test_no_correlation_id_outside_request():
    assert "correlation_id" not in add_correlation_id(None, "info", {"event": "x"})
