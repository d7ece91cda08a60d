"""Shared case list synchronization.

This module provides the pieces every grid client is built from:
- Case and Snapshot models
- The compact wire codec
- GridStoreClient: HTTP client for the key-value relay
- SyncEngine: background pulls and the atomic update protocol
- DispatchDesk: case mutations for the patient, police and hospital roles
"""

from saviour.grid.cache import LocalCache
from saviour.grid.client import Delivery, GridStoreClient
from saviour.grid.dispatch import DispatchDesk, generate_case_id
from saviour.grid.exceptions import (
    DecodeMalformed,
    GridError,
    InvalidTransition,
    RemoteUnavailable,
)
from saviour.grid.models import (
    Case,
    CaseStatus,
    EmergencyType,
    HospitalPreference,
    Location,
    Snapshot,
)
from saviour.grid.sync import SyncEngine, SyncStatus, upsert
from saviour.grid.sync_config import GridConfig

__all__ = [
    # Models
    "Case",
    "CaseStatus",
    "EmergencyType",
    "HospitalPreference",
    "Location",
    "Snapshot",
    # Transport
    "GridStoreClient",
    "Delivery",
    "GridConfig",
    # Sync
    "LocalCache",
    "SyncEngine",
    "SyncStatus",
    "upsert",
    # Dispatch
    "DispatchDesk",
    "generate_case_id",
    # Exceptions
    "GridError",
    "RemoteUnavailable",
    "DecodeMalformed",
    "InvalidTransition",
]
