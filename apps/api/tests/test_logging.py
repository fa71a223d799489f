"""
Tests for the structured log formatter and tenant stamping.
"""

import json
import logging

from core.logging import NO_TENANT, JSONFormatter, TenantFilter
from core.tenant import current_tenant


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="services.yoga_plan.service",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg="Created plan %s",
        args=("abc",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestTenantFilter:

    def test_stamps_current_tenant(self):
        token = current_tenant.set("studio-a")
        try:
            record = make_record()
            assert TenantFilter().filter(record) is True
        finally:
            current_tenant.reset(token)
        assert record.tenant_id == "studio-a"

    def test_outside_a_request(self):
        record = make_record()
        TenantFilter().filter(record)
        assert record.tenant_id == NO_TENANT


class TestJSONFormatter:

    def test_includes_tenant_and_message(self):
        record = make_record(tenant_id="studio-a")
        data = json.loads(JSONFormatter().format(record))
        assert data["tenant_id"] == "studio-a"
        assert data["message"] == "Created plan abc"
        assert data["level"] == "INFO"

    def test_extra_fields_merged(self):
        record = make_record(
            tenant_id="studio-a",
            extra_fields={"plan_id": "abc", "total_sessions": 12},
        )
        data = json.loads(JSONFormatter().format(record))
        assert data["plan_id"] == "abc"
        assert data["total_sessions"] == 12

    def test_unstamped_record(self):
        data = json.loads(JSONFormatter().format(make_record()))
        assert data["tenant_id"] == NO_TENANT
