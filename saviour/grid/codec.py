"""Compact wire encoding for grid cases.

The remote store holds a single text blob, so every case is squeezed into a
short-keyed record before it is written:

    i   case id                 h   hospital name
    p   patient name            d   ambulance driver
    n   phone number            dn  ambulance driver number
    e   emergency type code     o   officer name
    l   [lat, lng]              t   timestamp in seconds
    s   status code             pr  hospital preference code

The encoding is lossy on purpose. Names are cut to 15 characters, phone
numbers keep at most 10 digits, coordinates keep 5 decimals and timestamps
keep whole seconds. A snapshot carries at most 30 records.
"""

import json
import logging
import math
import re
import time
from typing import Any, Iterable

from saviour.grid.exceptions import DecodeMalformed
from saviour.grid.models import (
    Case,
    CaseStatus,
    EmergencyType,
    HospitalPreference,
    Location,
    Snapshot,
)

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 15
MAX_PHONE_DIGITS = 10
COORDINATE_PRECISION = 5
MAX_WIRE_RECORDS = 30
RETENTION_MS = 24 * 60 * 60 * 1000

EMERGENCY_CODES: dict[EmergencyType, int] = {
    EmergencyType.HEART: 0,
    EmergencyType.ACCIDENT: 1,
    EmergencyType.INJURY: 2,
    EmergencyType.EMERGENCY: 3,
    EmergencyType.PREGNANCY: 4,
    EmergencyType.OTHERS: 5,
}

STATUS_CODES: dict[CaseStatus, int] = {
    CaseStatus.PENDING: 0,
    CaseStatus.ACCEPTED: 1,
    CaseStatus.DISPATCHED: 2,
    CaseStatus.COMPLETED: 3,
    CaseStatus.CANCELED: 4,
}

PREFERENCE_CODES: dict[HospitalPreference, int] = {
    HospitalPreference.GOVERNMENT: 0,
    HospitalPreference.PRIVATE: 1,
    HospitalPreference.BOTH: 2,
}

_EMERGENCY_BY_CODE = {code: value for value, code in EMERGENCY_CODES.items()}
_STATUS_BY_CODE = {code: value for value, code in STATUS_CODES.items()}
_PREFERENCE_BY_CODE = {code: value for value, code in PREFERENCE_CODES.items()}

# Cases in these states stay on the wire however old they are
ALWAYS_ELIGIBLE = frozenset({CaseStatus.PENDING, CaseStatus.DISPATCHED})

_NON_DIGITS = re.compile(r"\D")


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def _truncate(value: str | None) -> str:
    return (value or "")[:MAX_NAME_LENGTH]


def _digits(value: str | None) -> str:
    return _NON_DIGITS.sub("", value or "")[:MAX_PHONE_DIGITS]


def _lookup(table: dict, code: Any, default):
    try:
        return table.get(code, default)
    except TypeError:
        # Unhashable junk (lists, dicts) is treated like an unknown code
        return default


def _is_number(value: Any) -> bool:
    # json.loads yields inf/nan for 1e400, Infinity and NaN
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _text(value: Any) -> str | None:
    return str(value) if value else None


def encode_case(case: Case) -> dict:
    """Encode a single case as a wire record.

    Args:
        case: Case to encode

    Returns:
        Wire record dict
    """
    return {
        "i": case.id,
        "p": _truncate(case.patient_name),
        "n": _digits(case.phone_number),
        "e": EMERGENCY_CODES.get(case.emergency_type, 3),
        "l": [
            round(float(case.location.lat), COORDINATE_PRECISION),
            round(float(case.location.lng), COORDINATE_PRECISION),
        ],
        "s": STATUS_CODES.get(case.status, 0),
        "h": _truncate(case.hospital_name),
        "d": _truncate(case.ambulance_driver),
        "dn": _digits(case.ambulance_driver_number),
        "o": _truncate(case.officer_name),
        "t": int(case.timestamp) // 1000,
        "pr": PREFERENCE_CODES.get(case.hospital_preference, 2),
    }


def decode_case(record: Any) -> Case:
    """Decode a single wire record.

    Unknown enum codes fall back to EMERGENCY, PENDING and BOTH.

    Args:
        record: Wire record as parsed from JSON

    Returns:
        Decoded case

    Raises:
        DecodeMalformed: Record is missing its id, coordinates or timestamp
    """
    if not isinstance(record, dict):
        raise DecodeMalformed(f"Wire record is not an object: {record!r}")

    case_id = record.get("i")
    if not isinstance(case_id, str) or not case_id:
        raise DecodeMalformed(f"Wire record has no id: {record!r}")

    coords = record.get("l")
    if (
        not isinstance(coords, (list, tuple))
        or len(coords) < 2
        or not _is_number(coords[0])
        or not _is_number(coords[1])
    ):
        raise DecodeMalformed(f"Wire record {case_id} has a bad coordinate pair")

    seconds = record.get("t")
    if not _is_number(seconds):
        raise DecodeMalformed(f"Wire record {case_id} has no timestamp")

    return Case(
        id=case_id,
        patient_name=str(record.get("p") or ""),
        phone_number=str(record.get("n") or ""),
        emergency_type=_lookup(
            _EMERGENCY_BY_CODE, record.get("e"), EmergencyType.EMERGENCY
        ),
        location=Location(lat=float(coords[0]), lng=float(coords[1])),
        status=_lookup(_STATUS_BY_CODE, record.get("s"), CaseStatus.PENDING),
        hospital_name=_text(record.get("h")),
        ambulance_driver=_text(record.get("d")),
        ambulance_driver_number=_text(record.get("dn")),
        officer_name=_text(record.get("o")),
        timestamp=int(seconds) * 1000,
        hospital_preference=_lookup(
            _PREFERENCE_BY_CODE, record.get("pr"), HospitalPreference.BOTH
        ),
    )


def is_eligible(case: Case, now: int | None = None) -> bool:
    """Check whether a case may be written to the shared snapshot."""
    if now is None:
        now = now_ms()
    return (now - case.timestamp) < RETENTION_MS or case.status in ALWAYS_ELIGIBLE


def encode_cases(cases: Iterable[Case], now: int | None = None) -> list[dict]:
    """Filter, cap and encode cases for an outgoing snapshot.

    Args:
        cases: Cases in snapshot order
        now: Reference instant in ms (default: current time)

    Returns:
        At most MAX_WIRE_RECORDS wire records
    """
    if now is None:
        now = now_ms()
    eligible = [case for case in cases if is_eligible(case, now)]
    if len(eligible) > MAX_WIRE_RECORDS:
        logger.debug(
            f"Dropping {len(eligible) - MAX_WIRE_RECORDS} eligible cases over the "
            f"{MAX_WIRE_RECORDS} record cap"
        )
    return [encode_case(case) for case in eligible[:MAX_WIRE_RECORDS]]


def decode_cases(records: Any) -> list[Case]:
    """Decode a list of wire records, skipping the malformed ones.

    When two records share an id the later one wins and takes the position
    of the first.
    """
    if not isinstance(records, list):
        return []

    decoded: dict[str, Case] = {}
    for record in records:
        try:
            case = decode_case(record)
        except DecodeMalformed as e:
            logger.warning(f"Skipping malformed wire record: {e}")
            continue
        decoded[case.id] = case
    return list(decoded.values())


def encode_snapshot(cases: Iterable[Case], timestamp: int | None = None) -> str:
    """Serialize cases into the blob stored under the global node."""
    if timestamp is None:
        timestamp = now_ms()
    payload = {"p": encode_cases(cases, now=timestamp), "t": timestamp}
    return json.dumps(payload, separators=(",", ":"))


def decode_snapshot(text: str | None) -> Snapshot | None:
    """Parse a blob read from the global node.

    The store may hand the payload back wrapped in an extra layer of JSON
    string encoding, so a quoted body is unwrapped once before parsing.

    Args:
        text: Raw response body

    Returns:
        Decoded snapshot, or None when the node holds no value yet

    Raises:
        DecodeMalformed: Body is not a JSON object
    """
    if text is None:
        return None
    raw = text.strip()
    if raw in ("", "null", '""'):
        return None

    if raw.startswith('"') and raw.endswith('"'):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            pass
        if not isinstance(raw, str) or raw.strip() in ("", "null", '""'):
            return None

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise DecodeMalformed(f"Snapshot is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise DecodeMalformed(f"Snapshot is not an object: {type(parsed).__name__}")

    timestamp = parsed.get("t")
    if not _is_number(timestamp) or not timestamp:
        timestamp = now_ms()

    return Snapshot(cases=decode_cases(parsed.get("p") or []), timestamp=int(timestamp))
