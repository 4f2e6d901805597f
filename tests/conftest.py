"""Shared fixtures for inventory-harmonizer tests."""

import pytest

from factories import ep, VM, XDR, ZTN, PAM, DIR


@pytest.fixture
def fleet():
    """
    Small mixed fleet:

    - exa-sp-001:    workstation in all five sources
    - exa-arklx-002: linux workstation missing directory-device
    - srv-db-01:     server in vulnerability-mgmt and xdr
    - srv-web-01:    server only in xdr
    - exa_bad:       naming violation in all five sources
    """
    return {
        VM: [
            ep("EXA-SP-001", VM, ip="10.0.0.1", os="Windows 11"),
            ep("exa-arklx-002", VM, ip="10.0.0.2"),
            ep("srv-db-01", VM, ip="10.1.0.1"),
            ep("exa_bad", VM),
        ],
        XDR: [
            ep("exa-sp-001", XDR, uuid="u-1", user_email="alice@co.com"),
            ep("exa-arklx-002", XDR),
            ep("srv-db-01", XDR),
            ep("srv-web-01", XDR, ip="10.1.0.2"),
            ep("exa_bad", XDR),
        ],
        ZTN: [
            ep("exa-sp-001", ZTN),
            ep("exa-arklx-002", ZTN),
            ep("exa_bad", ZTN),
        ],
        PAM: [
            ep("exa-sp-001", PAM),
            ep("exa_bad", PAM),
        ],
        DIR: [
            ep("exa-sp-001", DIR, user_email="alice@co.com"),
            ep("exa_bad", DIR),
        ],
    }
