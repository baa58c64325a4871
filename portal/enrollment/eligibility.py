"""
Age/gender eligibility of athletes for catalog programs.

Age uses calendar semantics: the year difference, minus one when this year's
birthday has not happened yet. Program bounds are inclusive. Status and
remaining capacity are deliberately ignored here; the enrollment service has
the final say on availability.
"""
from __future__ import annotations

from datetime import date
from typing import List, Optional, Sequence

from portal.enrollment.models import TrainingSession


def compute_age(dob: date, today: Optional[date] = None) -> int:
    today = today or date.today()
    age = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        age -= 1
    return age


def is_eligible(
    session: TrainingSession,
    dob: Optional[date],
    gender: str,
    today: Optional[date] = None,
) -> bool:
    if not dob:
        return False
    age = compute_age(dob, today)
    return session.gender == gender and session.min_age <= age <= session.max_age


def resolve_eligible_sessions(
    sessions: Sequence[TrainingSession],
    dob: Optional[date],
    gender: str,
    today: Optional[date] = None,
) -> List[TrainingSession]:
    """
    Programs an athlete may join, in catalog order.

    An empty date of birth yields an empty list, never the whole catalog.
    """
    if not dob:
        return []
    return [s for s in sessions if is_eligible(s, dob, gender, today)]
