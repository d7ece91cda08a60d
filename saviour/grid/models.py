"""Domain types shared by every actor on the emergency grid."""

from dataclasses import dataclass, field, replace
from enum import Enum


class EmergencyType(str, Enum):
    """Category of an emergency, as chosen by the patient."""

    HEART = "Cardiac Distress"
    ACCIDENT = "MVA / Vascular Trauma"
    INJURY = "Critical Physical Injury"
    EMERGENCY = "Acute SOS Protocol"
    PREGNANCY = "Obstetric Emergency"
    OTHERS = "Atypical Distress"


class CaseStatus(str, Enum):
    """Lifecycle status of a case."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DISPATCHED = "dispatched"
    COMPLETED = "completed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (CaseStatus.COMPLETED, CaseStatus.CANCELED)


class HospitalPreference(str, Enum):
    """Which kind of facility the patient is willing to be taken to."""

    GOVERNMENT = "GOVERNMENT"
    PRIVATE = "PRIVATE"
    BOTH = "BOTH"


@dataclass(frozen=True)
class Location:
    """Geographic coordinate pair. The address is display-only."""

    lat: float
    lng: float
    address: str | None = None


@dataclass
class Case:
    """A single emergency incident and its lifecycle.

    ``id`` is assigned once by the creating device and never rewritten.
    Every other field may be rewritten by any actor holding the case.
    ``timestamp`` is the creation or last-mutation instant in epoch
    milliseconds.
    """

    id: str
    patient_name: str
    phone_number: str
    emergency_type: EmergencyType
    location: Location
    status: CaseStatus = CaseStatus.PENDING
    hospital_name: str | None = None
    ambulance_driver: str | None = None
    ambulance_driver_number: str | None = None
    officer_name: str | None = None
    timestamp: int = 0
    hospital_preference: HospitalPreference = HospitalPreference.BOTH

    def evolve(self, **changes) -> "Case":
        """Return a copy with ``changes`` applied; the id cannot change."""
        if "id" in changes and changes["id"] != self.id:
            raise ValueError(f"Case id is immutable: {self.id}")
        return replace(self, **changes)


@dataclass
class Snapshot:
    """The global list of cases plus the instant it was produced (ms)."""

    cases: list[Case] = field(default_factory=list)
    timestamp: int = 0

    def find(self, case_id: str) -> Case | None:
        for case in self.cases:
            if case.id == case_id:
                return case
        return None

    def __len__(self) -> int:
        return len(self.cases)
