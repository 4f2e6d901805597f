"""
User-level comparison between the directory and the zero-trust network.

Complements the endpoint view: a terminated employee can keep a live
directory account or an enrolled zero-trust client without any device
hostname tying them to an endpoint.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from ._types import TerminatedEmployee
from .risk import terminated_email_set


class UserComplianceStatus(str, Enum):
    COMPLIANT = "compliant"
    MISSING_ZERO_TRUST = "missing_zero_trust"
    MISSING_DIRECTORY = "missing_directory"
    TERMINATED_ACTIVE = "terminated_active"


class DirectoryAccountState(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class DirectoryUser:
    """Account from the directory service."""
    email: str
    first_name: str = ""
    last_name: str = ""
    state: str = "ACTIVATED"

    @property
    def account_state(self) -> DirectoryAccountState:
        state = (self.state or "").upper()
        if state == "ACTIVATED":
            return DirectoryAccountState.ACTIVE
        if state == "SUSPENDED":
            return DirectoryAccountState.SUSPENDED
        return DirectoryAccountState.TERMINATED


@dataclass(frozen=True)
class ZeroTrustUser:
    """User enrolled in the zero-trust network client."""
    email: str
    active_device_count: int = 0


@dataclass
class UserComparison:
    email: str
    name: str
    in_directory: bool = False
    in_zero_trust: bool = False
    directory_state: Optional[DirectoryAccountState] = None
    zero_trust_device_count: int = 0
    is_terminated: bool = False
    status: UserComplianceStatus = UserComplianceStatus.MISSING_ZERO_TRUST

    def to_dict(self) -> Dict[str, Any]:
        return {
            "email": self.email,
            "name": self.name,
            "inDirectory": self.in_directory,
            "inZeroTrust": self.in_zero_trust,
            "directoryState": self.directory_state.value if self.directory_state else None,
            "zeroTrustDeviceCount": self.zero_trust_device_count,
            "isTerminated": self.is_terminated,
            "status": self.status.value,
        }


def compare_users(
    directory_users: Iterable[DirectoryUser],
    zero_trust_users: Iterable[ZeroTrustUser],
    terminated_employees: Iterable[TerminatedEmployee] = (),
) -> List[UserComparison]:
    """
    Join directory and zero-trust users by lowercased email.

    A user present in both is compliant; present in only one is missing the
    other; any present user on the terminated roster is terminated_active.

    Returns:
        UserComparison list sorted by name (case-insensitive)
    """
    terminated = terminated_email_set(terminated_employees)
    users: Dict[str, UserComparison] = {}

    for du in directory_users:
        key = du.email.strip().lower()
        if not key:
            continue
        name = f"{du.first_name} {du.last_name}".strip() or key.split("@")[0]
        users[key] = UserComparison(
            email=du.email.strip(),
            name=name,
            in_directory=True,
            directory_state=du.account_state,
            status=UserComplianceStatus.MISSING_ZERO_TRUST,
        )

    for zu in zero_trust_users:
        key = zu.email.strip().lower()
        if not key:
            continue
        existing = users.get(key)
        if existing is not None:
            existing.in_zero_trust = True
            existing.zero_trust_device_count = zu.active_device_count
            existing.status = UserComplianceStatus.COMPLIANT
        else:
            users[key] = UserComparison(
                email=zu.email.strip(),
                name=key.split("@")[0],
                in_zero_trust=True,
                zero_trust_device_count=zu.active_device_count,
                status=UserComplianceStatus.MISSING_DIRECTORY,
            )

    for key, user in users.items():
        if key in terminated:
            user.is_terminated = True
            user.status = UserComplianceStatus.TERMINATED_ACTIVE

    return sorted(users.values(), key=lambda u: u.name.lower())


def calculate_user_stats(users: Iterable[UserComparison]) -> Dict[str, int]:
    """Count users per compliance status."""
    stats = {"total": 0}
    stats.update({status.value: 0 for status in UserComplianceStatus})
    for user in users:
        stats["total"] += 1
        stats[user.status.value] += 1
    return stats
