"""Case mutations issued by the patient, police and hospital roles.

Each operation builds the new version of a case, stamps it with the current
time and hands it to ``SyncEngine.apply_update``, which pushes it to the
global node or, failing that, applies it to the local view only.
"""

import logging
import secrets
from typing import Optional

from saviour.grid.codec import now_ms
from saviour.grid.exceptions import InvalidTransition
from saviour.grid.models import (
    Case,
    CaseStatus,
    EmergencyType,
    HospitalPreference,
    Location,
)
from saviour.grid.sync import SyncEngine

logger = logging.getLogger(__name__)

CASE_ID_PREFIX = "SAV"
_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_case_id(now: Optional[int] = None) -> str:
    """Create a case id: time-based prefix plus a 5 character random suffix.

    Uniqueness is probabilistic; there is no central authority for ids.
    """
    if now is None:
        now = now_ms()
    suffix = "".join(secrets.choice(_BASE36) for _ in range(5))
    return f"{CASE_ID_PREFIX}-{_base36(now)}-{suffix}"


class DispatchDesk:
    """Entry point for every mutation a portal can make to a case."""

    def __init__(self, engine: SyncEngine):
        self.engine = engine

    def active_cases(self) -> list[Case]:
        """Cases in the local view."""
        return self.engine.cases

    def find(self, case_id: str) -> Case | None:
        for case in self.engine.cases:
            if case.id == case_id:
                return case
        return None

    def create_case(
        self,
        patient_name: str,
        phone_number: str,
        emergency_type: EmergencyType,
        preference: HospitalPreference = HospitalPreference.BOTH,
        location: Optional[Location] = None,
    ) -> Case:
        """Raise a new pending case from the patient's device.

        Args:
            patient_name: Name of the person in distress
            phone_number: Contact number
            emergency_type: Category chosen by the patient
            preference: Facility type the patient accepts
            location: Current position; (0, 0) when unknown

        Returns:
            The created case
        """
        now = now_ms()
        case = Case(
            id=generate_case_id(now),
            patient_name=patient_name,
            phone_number=phone_number,
            emergency_type=emergency_type,
            location=location or Location(lat=0.0, lng=0.0),
            status=CaseStatus.PENDING,
            timestamp=now,
            hospital_preference=preference,
        )
        logger.info(f"Creating case {case.id} ({emergency_type.value})")
        self.engine.apply_update(case)
        return case

    def _mutate(self, case_id: str, **changes) -> Case | None:
        current = self.find(case_id)
        if current is None:
            logger.warning(f"Case {case_id} is not in the local view")
            return None
        if current.status.is_terminal:
            raise InvalidTransition(
                f"Case {case_id} is {current.status.value} and cannot change"
            )

        updated = current.evolve(timestamp=now_ms(), **changes)
        self.engine.apply_update(updated)
        return updated

    def cancel_case(self, case_id: str) -> Case | None:
        """Cancel a case on behalf of the patient."""
        return self._mutate(case_id, status=CaseStatus.CANCELED)

    def update_case(
        self,
        case_id: str,
        status: CaseStatus,
        hospital_name: Optional[str] = None,
        driver: Optional[str] = None,
        driver_number: Optional[str] = None,
    ) -> Case | None:
        """Move a case forward from the hospital portal.

        Blank facility or transport details keep whatever the case already
        carries.
        """
        current = self.find(case_id)
        if current is None:
            logger.warning(f"Case {case_id} is not in the local view")
            return None
        return self._mutate(
            case_id,
            status=status,
            hospital_name=hospital_name or current.hospital_name,
            ambulance_driver=driver or current.ambulance_driver,
            ambulance_driver_number=driver_number or current.ambulance_driver_number,
        )

    def assign_officer(self, case_id: str, officer_name: str) -> Case | None:
        """Claim a case for a police officer, which marks it accepted."""
        return self._mutate(
            case_id, officer_name=officer_name, status=CaseStatus.ACCEPTED
        )
