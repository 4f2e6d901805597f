"""
Tests for alert generation.
"""

from datetime import datetime, timezone

import pytest

from inventory_harmonizer._types import AlertType, SourceId
from inventory_harmonizer.alerts import generate_alerts
from inventory_harmonizer.comparison import reconcile

from factories import employee, ep, VM, XDR, ZTN, PAM, DIR

WHEN = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestGenerateAlerts:
    """Tests for generate_alerts."""

    @pytest.fixture
    def result(self, fleet):
        return reconcile(fleet, [employee("alice@co.com")])

    def test_one_alert_per_non_empty_collection(self, result):
        alerts = generate_alerts(result, timestamp=WHEN, run_id="run1")

        assert [a.id for a in alerts] == [
            "alert-terminated-active-run1",
            "alert-terminated-directory-run1",
            "alert-non-compliant-run1",
            "alert-missing-vulnerability-mgmt-run1",
            "alert-missing-directory-device-run1",
            "alert-only-xdr-run1",
            "alert-in-all-sources-run1",
        ]

    def test_severities_and_sources(self, result):
        alerts = {a.id: a for a in generate_alerts(result, run_id="r")}

        assert alerts["alert-terminated-active-r"].type == AlertType.ERROR
        assert alerts["alert-terminated-directory-r"].source == SourceId.DIRECTORY_DEVICE
        assert alerts["alert-non-compliant-r"].type == AlertType.ERROR

        missing = alerts["alert-missing-vulnerability-mgmt-r"]
        assert missing.type == AlertType.WARNING
        assert missing.source == SourceId.VULNERABILITY_MGMT
        assert missing.message.startswith("1 endpoint(s)")
        assert "Vicarius" in missing.title

    def test_counts_in_messages(self, result):
        alerts = {a.id: a for a in generate_alerts(result, run_id="r")}
        assert alerts["alert-non-compliant-r"].message.startswith("2 endpoint(s)")

    def test_timestamp(self, result):
        alerts = generate_alerts(result, timestamp=WHEN, run_id="r")
        assert all(a.timestamp == WHEN.isoformat() for a in alerts)

        alerts = generate_alerts(result, timestamp="2024-06-01T00:00:00Z", run_id="r")
        assert all(a.timestamp == "2024-06-01T00:00:00Z" for a in alerts)

    def test_default_run_id_from_timestamp(self, result):
        alerts = generate_alerts(result, timestamp=WHEN)
        millis = str(int(WHEN.timestamp() * 1000))
        assert all(a.id.endswith(millis) for a in alerts)

    def test_pure(self, result):
        first = generate_alerts(result, timestamp=WHEN, run_id="r")
        second = generate_alerts(result, timestamp=WHEN, run_id="r")
        assert first == second

    def test_privileged_access_alert(self):
        result = reconcile(
            {
                VM: [ep("srv-01", VM)],
                XDR: [ep("srv-01", XDR)],
                PAM: [ep("", PAM, user_email="gone@co.com")],
            },
            [employee("gone@co.com")],
        )
        alerts = generate_alerts(result, run_id="r")

        assert [a.id for a in alerts] == [
            "alert-terminated-pam-r",
            "alert-in-all-sources-r",
        ]
        assert alerts[0].source == SourceId.PRIVILEGED_ACCESS

    def test_clean_run_only_reports_sync(self):
        result = reconcile({
            VM: [ep("srv-01", VM)],
            XDR: [ep("srv-01", XDR)],
            ZTN: [ep("srv-01", ZTN)],
        })
        alerts = generate_alerts(result, run_id="r")

        assert [a.id for a in alerts] == ["alert-in-all-sources-r"]
        assert alerts[0].type == AlertType.INFO
        assert alerts[0].source is None
        assert alerts[0].message.startswith("1 endpoint(s)")

    def test_empty_result_has_no_alerts(self):
        result = reconcile({s: [] for s in SourceId})
        assert generate_alerts(result) == []

    def test_only_in_source_info(self, result):
        alerts = {a.id: a for a in generate_alerts(result, run_id="r")}

        only = alerts["alert-only-xdr-r"]
        assert only.type == AlertType.INFO
        assert only.source == SourceId.XDR
        assert only.title == "Endpoints only in Cortex XDR"
        assert only.message.startswith("1 endpoint(s)")
        assert "alert-only-vulnerability-mgmt-r" not in alerts

        synced = alerts["alert-in-all-sources-r"]
        assert synced.title == "Endpoints synchronized"
        assert synced.message.startswith("3 endpoint(s)")

    def test_info_alerts_follow_warnings(self, result):
        types = [a.type for a in generate_alerts(result, run_id="r")]
        first_info = types.index(AlertType.INFO)
        assert AlertType.INFO not in types[:first_info]
        assert all(t == AlertType.INFO for t in types[first_info:])
        assert AlertType.WARNING in types[:first_info]

    def test_only_in_alerts_in_source_order(self):
        result = reconcile({
            DIR: [ep("srv-dir", DIR)],
            VM: [ep("srv-vm", VM)],
        })
        alerts = generate_alerts(result, run_id="r")
        info = [a.id for a in alerts if a.type == AlertType.INFO]

        assert info == ["alert-only-vulnerability-mgmt-r", "alert-only-directory-device-r"]

    def test_to_dict(self, result):
        alert = generate_alerts(result, timestamp=WHEN, run_id="r")[4]
        data = alert.to_dict()
        assert data["type"] == "warning"
        assert data["source"] == DIR.value
