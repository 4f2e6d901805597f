"""
Source adapters.

Each adapter produces one source's endpoint list for a sync run:

- HttpSourceAdapter:   live API via aiohttp
- StaticSourceAdapter: records already in hand (file import or sample data)

resolve_adapter() picks one per source with precedence
configured API > file import > sample data.
"""

import asyncio
import csv
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import aiohttp
from pydantic import ValidationError

from ._types import (
    Endpoint,
    EndpointModel,
    OriginKind,
    SourceId,
    TerminatedEmployee,
    TerminatedEmployeeModel,
)
from .config import HarmonizerConfig, SourceApiConfig
from .exceptions import AdapterError, RosterValidationError

logger = logging.getLogger(__name__)

RawRecord = Union[Endpoint, Mapping[str, Any]]

# Canonical field -> accepted names in source payloads, first match wins.
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "id": ("id", "_id", "device_id", "endpoint_id", "agentId"),
    "hostname": ("hostname", "hostName", "name", "endpoint_name", "displayName", "device_name"),
    "ip": ("ip", "ipAddress", "ipaddress", "ip_address", "ipv4", "ip_addresses"),
    "uuid": ("uuid", "deviceId", "device_uuid", "serialNumber", "serial"),
    "os": ("os", "osName", "os_type", "operating_system", "platform"),
    "last_seen": ("lastSeen", "last_seen", "lastseen", "lastContact", "last_contact_time", "updated_at"),
    "user_email": ("userEmail", "user_email", "useremail", "email", "owner_email"),
}

# Where each tool's API lists its devices.
DEFAULT_ENDPOINT_PATHS: Dict[SourceId, str] = {
    SourceId.VULNERABILITY_MGMT: "/api/v1/endpoints",
    SourceId.XDR: "/public_api/v1/endpoints/get_endpoints",
    SourceId.ZERO_TRUST_NETWORK: "/devices",
    SourceId.PRIVILEGED_ACCESS: "/api/v1/machines",
    SourceId.DIRECTORY_DEVICE: "/api/systems",
}

# Response envelope keys that may wrap the device list.
ENVELOPE_KEYS = ("data", "results", "result", "items", "endpoints", "devices", "systems", "reply")


def _pick(payload: Mapping[str, Any], names: Sequence[str]) -> Any:
    for name in names:
        value = payload.get(name)
        if value not in (None, ""):
            if isinstance(value, list):
                value = value[0] if value else None
            return value
    return None


def map_record(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Map a tool-specific payload onto canonical endpoint fields."""
    return {field: _pick(payload, names) for field, names in FIELD_ALIASES.items()}


def to_endpoints(
    records: Iterable[RawRecord],
    source: SourceId,
    origin: OriginKind,
) -> List[Endpoint]:
    """
    Validate raw records into Endpoints stamped with source and origin.

    Endpoint instances are kept as-is except that their source is forced
    to the list they are filed under.

    Invalid records are skipped with a warning.
    """
    endpoints = []
    skipped = 0

    for record in records:
        if isinstance(record, Endpoint):
            if record.source != source:
                logger.debug(
                    f"Re-stamping {record.hostname!r} from {record.source.value} to {source.value}"
                )
                record = replace(record, source=source)
            endpoints.append(record)
            continue
        if not isinstance(record, Mapping):
            skipped += 1
            continue
        data = map_record(record)
        data.update(source=source, origin=origin)
        try:
            endpoints.append(EndpointModel(**data).to_endpoint())
        except ValidationError as e:
            skipped += 1
            logger.debug(f"Invalid {source.value} record skipped: {e}")

    if skipped:
        logger.warning(f"Skipped {skipped} invalid {source.value} record(s)")

    return endpoints


class SourceAdapter(ABC):
    """Produces one source's endpoint list."""

    def __init__(self, source: SourceId, origin: OriginKind):
        self.source = source
        self.origin = origin

    @abstractmethod
    async def fetch(self) -> List[Endpoint]:
        """
        Fetch the source's current inventory.

        Raises:
            AdapterError: If the inventory cannot be produced
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.source.value}, {self.origin.value})"


class StaticSourceAdapter(SourceAdapter):
    """Serves records already loaded from a file import or sample set."""

    def __init__(
        self,
        source: SourceId,
        records: Iterable[RawRecord],
        origin: OriginKind = OriginKind.FILE_IMPORT,
    ):
        super().__init__(source, origin)
        self.records = list(records)

    async def fetch(self) -> List[Endpoint]:
        return to_endpoints(self.records, self.source, self.origin)


class HttpSourceAdapter(SourceAdapter):
    """
    Fetches a source inventory over HTTP.

    Features:
    - Bearer token auth
    - Envelope unwrapping (data/results/items/...)
    - Tool-specific field names mapped through FIELD_ALIASES
    """

    def __init__(
        self,
        source: SourceId,
        api: SourceApiConfig,
        timeout: int = 30,
        path: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize HTTP adapter.

        Args:
            source: Source this adapter serves
            api: Base URL and token
            timeout: Request timeout in seconds
            path: Endpoint listing path (default per source)
            session: Shared client session; one is created per fetch if omitted
        """
        super().__init__(source, OriginKind.API)
        if not api.is_configured:
            raise AdapterError(source, "API base URL and token are required")
        self.api = api
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.path = path or DEFAULT_ENDPOINT_PATHS[source]
        self._session = session

    @property
    def url(self) -> str:
        return f"{self.api.base_url}{self.path}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api.api_token}",
            "Accept": "application/json",
            "User-Agent": "inventory-harmonizer",
        }

    async def fetch(self) -> List[Endpoint]:
        if self._session is not None:
            payload = await self._get(self._session)
        else:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                payload = await self._get(session)

        records = _unwrap(payload)
        if records is None:
            raise AdapterError(self.source, f"Unexpected response shape from {self.url}")

        endpoints = to_endpoints(records, self.source, self.origin)
        logger.info(f"Fetched {len(endpoints)} endpoint(s) from {self.source.label}")
        return endpoints

    async def _get(self, session: aiohttp.ClientSession) -> Any:
        logger.debug(f"GET {self.url}")
        try:
            async with session.get(self.url, headers=self._headers(), timeout=self.timeout) as response:
                if response.status in (401, 403):
                    raise AdapterError(self.source, f"Authentication failed: {response.status}")
                if response.status >= 400:
                    text = await response.text()
                    raise AdapterError(self.source, f"HTTP {response.status}: {text[:200]}")
                try:
                    return await response.json(content_type=None)
                except (json.JSONDecodeError, aiohttp.ContentTypeError) as e:
                    raise AdapterError(self.source, f"Invalid JSON response: {e}") from e
        except aiohttp.ClientError as e:
            raise AdapterError(self.source, f"Request to {self.url} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise AdapterError(self.source, f"Request to {self.url} timed out") from e


def _unwrap(payload: Any) -> Optional[List[Any]]:
    """Find the device list inside a response body."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ENVELOPE_KEYS:
            if key in payload:
                found = _unwrap(payload[key])
                if found is not None:
                    return found
    return None


def resolve_adapter(
    source: SourceId,
    config: HarmonizerConfig,
    imported: Optional[Sequence[RawRecord]] = None,
    sample: Optional[Sequence[RawRecord]] = None,
) -> Optional[SourceAdapter]:
    """
    Pick the adapter for one source.

    Precedence: configured API, then file import, then sample data.
    Returns None when the source has no data at all for this run.
    """
    api = config.source(source)
    if api.is_configured:
        return HttpSourceAdapter(source, api, timeout=config.request_timeout)
    if imported is not None:
        return StaticSourceAdapter(source, imported, OriginKind.FILE_IMPORT)
    if sample is not None:
        return StaticSourceAdapter(source, sample, OriginKind.SAMPLE)
    return None


# =============================================================================
# FILE IMPORT
# =============================================================================


def read_endpoint_file(path: Path) -> List[Dict[str, Any]]:
    """
    Read raw endpoint records from a JSON array or CSV export.

    CSV files need a hostname column. Rows with a blank hostname are kept
    (the account may have no device attached); fully empty rows are skipped.

    Raises:
        AdapterError: If the file is unreadable or malformed
    """
    path = Path(path)
    try:
        with open(path, newline="") as f:
            if path.suffix.lower() == ".csv":
                return _read_csv(f, path)
            data = json.load(f)
    except OSError as e:
        raise AdapterError("file-import", f"Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise AdapterError("file-import", f"Invalid JSON in {path}: {e}") from e

    records = _unwrap(data)
    if records is None:
        raise AdapterError("file-import", f"{path} must contain a JSON array of endpoints")
    return records


def _read_csv(f, path: Path) -> List[Dict[str, Any]]:
    reader = csv.DictReader(f)
    headers = [h.strip().lower() for h in (reader.fieldnames or [])]
    if "hostname" not in headers:
        raise AdapterError(
            "file-import",
            f"{path}: missing required column 'hostname' (found: {', '.join(headers)})",
        )
    rows = []
    for row in reader:
        record = {(k or "").strip().lower(): (v or "").strip() for k, v in row.items()}
        if any(record.values()):
            rows.append(record)
    return rows


def load_roster_file(path: Path) -> List[TerminatedEmployee]:
    """
    Load the terminated-employee roster from a JSON array.

    Raises:
        RosterValidationError: If the file or any entry is invalid
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = json.load(f)
    except OSError as e:
        raise RosterValidationError(f"Cannot read roster {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise RosterValidationError(f"Invalid JSON in roster {path}: {e}") from e

    if not isinstance(data, list):
        raise RosterValidationError(f"Roster {path} must contain a JSON array")

    return parse_roster(data)


def parse_roster(entries: Iterable[Mapping[str, Any]]) -> List[TerminatedEmployee]:
    employees = []
    for index, entry in enumerate(entries):
        try:
            employees.append(TerminatedEmployeeModel(**entry).to_employee())
        except (ValidationError, TypeError) as e:
            raise RosterValidationError(f"Roster entry {index} is invalid: {e}") from e
    return employees
