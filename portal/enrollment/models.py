"""
Plain data structures for the enrollment wizard.

Domain overview
---------------
TrainingSession   — read-only catalog entry (a program an athlete can join)
EnrollmentDraft   — everything the parent has typed so far
  └─ AthleteDraft — one child being enrolled, with an optional program choice

These objects carry no framework or database coupling so the wizard can be
driven from tests, the bot, or any other shell.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional


class Gender:
    MALE   = "Male"
    FEMALE = "Female"
    COED   = "Coed"      # catalog only; athletes are Male or Female

    ATHLETE_CHOICES = (MALE, FEMALE)


class JerseySize:
    CHOICES = ("XS", "S", "M", "L", "XL")
    DEFAULT = "M"


class ProgramStatus:
    OPEN          = "Open"
    LIMITED       = "Limited"
    WAITLIST_SOON = "Waitlist Soon"
    FULL          = "Full"
    ARCHIVED      = "Archived"


@dataclass(frozen=True)
class TrainingSession:
    """Catalog snapshot of a program. Never mutated by the wizard."""
    id:               str
    sport:            str
    level:            str
    gender:           str
    min_age:          int
    max_age:          int
    price:            Decimal
    capacity:         int = 20
    registered_count: int = 0
    status:           str = ProgramStatus.OPEN
    schedule:         str = ""
    location:         str = ""
    head_coach:       str = ""

    @property
    def label(self) -> str:
        return f"{self.sport} {self.level}"

    @property
    def spots_left(self) -> int:
        return max(0, self.capacity - self.registered_count)


@dataclass
class AthleteDraft:
    name:                str = ""
    dob:                 Optional[date] = None
    gender:              str = Gender.MALE
    jersey_size:         str = JerseySize.DEFAULT
    selected_session_id: Optional[str] = None


@dataclass
class EnrollmentDraft:
    athletes:         List[AthleteDraft] = field(default_factory=lambda: [AthleteDraft()])
    parent_name:      str = ""
    email:            str = ""
    phone:            str = ""
    waiver_agreed:    bool = False
    waiver_signature: str = ""
    card_number:      str = ""
    expiry:           str = ""
    cvc:              str = ""


def find_session(sessions: List[TrainingSession], session_id: Optional[str]) -> Optional[TrainingSession]:
    if not session_id:
        return None
    for s in sessions:
        if s.id == session_id:
            return s
    return None
