"""CSV export of reconciled endpoints and users."""

import csv
import io
from typing import Iterable

from ._types import NormalizedEndpoint
from .users import UserComparison

ENDPOINT_COLUMNS = ["hostname", "ip", "uuid", "os", "lastSeen", "userEmail", "sources", "riskLevel"]
USER_COLUMNS = [
    "name", "email", "inDirectory", "inZeroTrust",
    "directoryState", "zeroTrustDeviceCount", "status",
]


def endpoints_to_csv(endpoints: Iterable[NormalizedEndpoint]) -> str:
    """Render endpoints as CSV text with a header row."""
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(ENDPOINT_COLUMNS)

    for ep in endpoints:
        writer.writerow([
            ep.hostname,
            ep.ip,
            ep.uuid,
            ep.os or "",
            ep.last_seen or "",
            ep.user_email or "",
            ", ".join(s.value for s in ep.sources),
            ep.risk_level.value,
        ])

    return output.getvalue()


def users_to_csv(users: Iterable[UserComparison]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(USER_COLUMNS)

    for u in users:
        writer.writerow([
            u.name,
            u.email,
            "yes" if u.in_directory else "no",
            "yes" if u.in_zero_trust else "no",
            u.directory_state.value if u.directory_state else "N/A",
            u.zero_trust_device_count,
            u.status.value,
        ])

    return output.getvalue()
