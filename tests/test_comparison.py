"""
Tests for the comparison aggregator.

Covers the end-to-end reconciliation scenarios and the set properties.
"""

import logging

import pytest

from inventory_harmonizer._types import DeviceCategory, RiskLevel, SourceId
from inventory_harmonizer.alerts import generate_alerts
from inventory_harmonizer.comparison import ReconciliationEngine, aggregate, reconcile
from inventory_harmonizer.merger import merge_sources
from inventory_harmonizer.policy import CompliancePolicy

from factories import employee, ep, VM, XDR, ZTN, PAM, DIR


def hostnames(entities):
    return [e.hostname for e in entities]


class TestScenarios:
    """Concrete reconciliation scenarios."""

    def test_merge_backfill(self):
        result = reconcile({
            VM: [ep("srv-db-01", VM, ip="10.0.0.1")],
            XDR: [ep("SRV-DB-01", XDR, ip="")],
        })

        assert len(result.all_endpoints) == 1
        entity = result.all_endpoints[0]
        assert entity.sources == [VM, XDR]
        assert entity.ip == "10.0.0.1"

    def test_linux_workstation_missing_sources(self):
        result = reconcile({
            VM: [ep("EXA-ARKLX-001", VM)],
            XDR: [ep("EXA-ARKLX-001", XDR)],
        })

        entity = result.all_endpoints[0]
        assert entity.category == DeviceCategory.WORKSTATION
        assert entity in result.non_compliant
        assert entity.risk_level == RiskLevel.MEDIUM
        assert entity.risk_reason == (
            "Missing required sources: zero-trust-network, directory-device"
        )

    def test_server_with_vm_and_xdr_is_compliant(self):
        result = reconcile({
            VM: [ep("srv-web-01", VM)],
            XDR: [ep("srv-web-01", XDR)],
        })

        entity = result.all_endpoints[0]
        assert entity.category == DeviceCategory.SERVER
        assert hostnames(result.in_all_sources) == ["srv-web-01"]
        assert result.non_compliant == []
        assert entity.risk_level == RiskLevel.NONE

    def test_terminated_email_always_high(self, fleet):
        result = reconcile(fleet, [employee("ALICE@co.com")])

        entity = next(e for e in result.all_endpoints if e.hostname == "exa-sp-001")
        assert entity.sources == [VM, XDR, ZTN, PAM, DIR]
        assert entity.risk_level == RiskLevel.HIGH
        assert hostnames(result.terminated_with_active_endpoints) == ["exa-sp-001"]

    def test_all_sources_empty(self):
        result = reconcile({s: [] for s in SourceId}, [employee("gone@co.com")])

        assert result.all_endpoints == []
        assert result.in_all_sources == []
        assert result.non_compliant == []
        assert result.terminated_with_active_endpoints == []
        assert result.terminated_in_directory == []
        assert result.terminated_in_privileged_access == []
        assert result.workstations == []
        assert result.servers == []
        assert result.naming_violations == []
        assert all(result.only(s) == [] for s in SourceId)
        assert all(result.missing(s) == [] for s in SourceId)
        assert generate_alerts(result) == []

    def test_terminated_account_without_device(self):
        """Account-level hit in the directory without a matching endpoint."""
        gone = employee("gone@co.com", name="Gone")
        result = reconcile(
            {
                VM: [ep("srv-01", VM)],
                DIR: [ep("", DIR, user_email="Gone@co.com")],
            },
            [gone],
        )

        assert result.terminated_in_directory == [gone]
        assert result.terminated_with_active_endpoints == []
        assert result.terminated_in_privileged_access == []


class TestAggregateSets:
    """Tests for the derived collections over a mixed fleet."""

    @pytest.fixture
    def result(self, fleet):
        return reconcile(fleet, [employee("pam-user@co.com")])

    def test_only_in(self, result):
        assert hostnames(result.only(XDR)) == ["srv-web-01"]
        assert result.only(VM) == []

    def test_missing_from_respects_policy(self, result):
        # srv-web-01 lacks zero-trust but servers do not require it
        assert hostnames(result.missing(ZTN)) == []
        assert hostnames(result.missing(VM)) == ["srv-web-01"]
        assert hostnames(result.missing(DIR)) == ["exa-arklx-002"]
        # linux workstations never need privileged access
        assert "exa-arklx-002" not in hostnames(result.missing(PAM))

    def test_compliance_partition(self, result):
        """in_all_sources and non_compliant partition all entities."""
        compliant = set(hostnames(result.in_all_sources))
        failing = set(hostnames(result.non_compliant))
        assert compliant & failing == set()
        assert compliant | failing == set(hostnames(result.all_endpoints))
        assert failing == {"exa-arklx-002", "srv-web-01"}

    def test_category_buckets(self, result):
        assert hostnames(result.workstations) == ["exa-sp-001", "exa-arklx-002", "exa_bad"]
        assert hostnames(result.servers) == ["srv-db-01", "srv-web-01"]
        assert hostnames(result.naming_violations) == ["exa_bad"]

    def test_naming_violation_entity_is_low_risk(self, result):
        entity = next(e for e in result.all_endpoints if e.hostname == "exa_bad")
        assert entity.risk_level == RiskLevel.LOW
        assert entity in result.in_all_sources

    def test_merge_order_preserved(self, result):
        assert hostnames(result.all_endpoints) == [
            "exa-sp-001", "exa-arklx-002", "srv-db-01", "exa_bad", "srv-web-01",
        ]

    def test_source_counts_are_raw(self, result):
        assert result.source_counts[VM] == 4
        assert result.source_counts[XDR] == 5
        assert result.source_counts[DIR] == 2

    def test_summary(self, result):
        summary = result.summary()
        assert summary["total"] == 5
        assert summary["non_compliant"] == 2
        assert summary["only_in"]["xdr"] == 1
        assert summary["missing_from"]["directory-device"] == 1


class TestAggregate:
    """Tests for aggregate() directly."""

    def test_privileged_access_roster_check(self):
        gone = employee("gone@co.com")
        sources = {PAM: [ep("exa-sp-001", PAM, user_email="gone@co.com")]}
        result = aggregate(merge_sources(sources), [gone], raw_sources=sources)

        assert result.terminated_in_privileged_access == [gone]
        assert result.terminated_in_directory == []

    def test_without_raw_sources(self):
        sources = {DIR: [ep("exa-sp-001", DIR, user_email="gone@co.com")]}
        result = aggregate(merge_sources(sources), [employee("gone@co.com")])

        # Entity-level check still works; account-level needs raw records
        assert len(result.terminated_with_active_endpoints) == 1
        assert result.terminated_in_directory == []

    def test_logs_terminated_warning(self, caplog):
        sources = {VM: [ep("srv-01", VM, user_email="gone@co.com")]}
        with caplog.at_level(logging.WARNING, logger="inventory_harmonizer.comparison"):
            reconcile(sources, [employee("gone@co.com")])
        assert "terminated employees" in caplog.text


class TestReconciliationEngine:

    def test_uses_custom_policy(self):
        policy = CompliancePolicy(server_required=[SourceId.XDR])
        engine = ReconciliationEngine(policy)
        result = engine.reconcile({XDR: [ep("srv-01", XDR)]})

        assert hostnames(result.in_all_sources) == ["srv-01"]
        assert result.missing(VM) == []

    def test_default_policy(self):
        result = ReconciliationEngine().reconcile({XDR: [ep("srv-01", XDR)]})
        assert hostnames(result.missing(VM)) == ["srv-01"]
