"""
Tests for hostname-based compliance policy.
"""

import pytest

from inventory_harmonizer._types import DeviceCategory, NormalizedEndpoint, SourceId
from inventory_harmonizer.exceptions import ConfigError
from inventory_harmonizer.policy import (
    DEFAULT_POLICY,
    CompliancePolicy,
    PolicyRule,
    classify,
    is_compliant,
    missing_sources,
    required_sources,
)

from factories import VM, XDR, ZTN, PAM, DIR

ALL_FIVE = (VM, XDR, ZTN, PAM, DIR)


class TestClassify:
    """Tests for hostname classification."""

    @pytest.mark.parametrize("hostname", ["exa-sp-001", "EXA-RJ-042", "exa-campinas-999"])
    def test_standard_workstation(self, hostname):
        result = classify(hostname)
        assert result.category == DeviceCategory.WORKSTATION
        assert result.required_sources == ALL_FIVE
        assert result.naming_reason is None

    def test_linux_workstation_skips_privileged_access(self):
        result = classify("EXA-ARKLX-001")
        assert result.category == DeviceCategory.WORKSTATION
        assert result.rule_name == "linux-workstation"
        assert result.required_sources == (VM, XDR, ZTN, DIR)

    @pytest.mark.parametrize("hostname", ["exa_sp_001", "exa-sp-1", "exa-sp-0001", "exa"])
    def test_workstation_family_bad_name(self, hostname):
        result = classify(hostname)
        assert result.category == DeviceCategory.NAMING_VIOLATION
        assert result.required_sources == ALL_FIVE
        assert "Naming violation" in result.naming_reason
        assert hostname in result.naming_reason

    def test_linux_family_bad_name_keeps_linux_requirements(self):
        result = classify("exa-arklx-01")
        assert result.category == DeviceCategory.NAMING_VIOLATION
        assert result.rule_name == "linux-workstation"
        assert PAM not in result.required_sources

    @pytest.mark.parametrize("hostname", ["srv-web-01", "exam-room-1", "db01", "", None])
    def test_everything_else_is_server(self, hostname):
        result = classify(hostname)
        assert result.category == DeviceCategory.SERVER
        assert result.required_sources == (VM, XDR)
        assert not result.is_workstation

    def test_classification_ignores_case_and_whitespace(self):
        assert classify("  EXA-SP-001 ") == classify("exa-sp-001")


class TestCompliance:
    """Tests for required/missing source checks."""

    def test_server_does_not_need_zero_trust(self):
        entity = NormalizedEndpoint(hostname="srv-web-01", sources=[VM, XDR])
        assert is_compliant(entity)
        assert missing_sources(entity) == []

    def test_missing_in_policy_order(self):
        entity = NormalizedEndpoint(hostname="exa-arklx-001", sources=[XDR, VM])
        assert missing_sources(entity) == [ZTN, DIR]
        assert not is_compliant(entity)

    def test_required_sources_function(self):
        assert required_sources("exa-sp-001") == ALL_FIVE

    def test_categorize_stamps_entity(self):
        entity = NormalizedEndpoint(hostname="exa_bad", sources=[VM])
        DEFAULT_POLICY.categorize(entity)
        assert entity.category == DeviceCategory.NAMING_VIOLATION
        assert entity.naming_violation is not None
        assert entity.is_workstation


class TestPolicyRule:
    """Tests for rule construction from config data."""

    def test_from_dict(self):
        rule = PolicyRule.from_dict({
            "name": "kiosk",
            "family": "kiosk",
            "pattern": r"kiosk-\d{2}",
            "required_sources": ["xdr", "directory-device"],
        })
        assert rule.required_sources == (XDR, DIR)
        assert rule.in_family("KIOSK-01")
        assert rule.matches_exactly("kiosk-01")
        assert not rule.matches_exactly("kiosk-001")

    def test_missing_field(self):
        with pytest.raises(ConfigError, match="missing field"):
            PolicyRule.from_dict({"name": "x", "family": "x"})

    def test_unknown_source(self):
        with pytest.raises(ConfigError):
            PolicyRule.from_dict({
                "name": "x", "family": "x", "pattern": "x",
                "required_sources": ["antivirus"],
            })

    def test_bad_regex(self):
        with pytest.raises(ConfigError, match="regex"):
            PolicyRule.from_dict({
                "name": "x", "family": "(", "pattern": "x",
                "required_sources": ["xdr"],
            })

    def test_empty_required_sources(self):
        with pytest.raises(ConfigError, match="requires no sources"):
            PolicyRule.from_dict({
                "name": "x", "family": "x", "pattern": "x", "required_sources": [],
            })

    def test_custom_policy_rule_order(self):
        policy = CompliancePolicy.from_dicts([
            {"name": "kiosk", "family": "kiosk", "pattern": r"kiosk-\d{2}",
             "required_sources": ["xdr"]},
        ])
        assert policy.classify("kiosk-07").required_sources == (XDR,)
        # Default workstation rules are replaced, so exa hosts fall back to server
        assert policy.classify("exa-sp-001").category == DeviceCategory.SERVER
