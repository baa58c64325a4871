"""
Unit tests — Age computation and program eligibility (eligibility.py).

Birthday boundaries are checked on both sides: the day before the anniversary
still counts the younger age. Program bounds are inclusive.
"""
from __future__ import annotations

from datetime import date

import pytest

from portal.enrollment.eligibility import compute_age, is_eligible, resolve_eligible_sessions

TODAY = date(2026, 10, 19)


# ─────────────────────────── Age ──────────────────────────────────────────────

@pytest.mark.parametrize("dob,expected", [
    (date(2014, 10, 19), 12),   # birthday today
    (date(2014, 10, 20), 11),   # birthday tomorrow
    (date(2014, 10, 18), 12),   # birthday yesterday
    (date(2014, 11, 1),  11),   # later month
    (date(2026, 10, 19),  0),   # born today
])
def test_compute_age(dob: date, expected: int) -> None:
    assert compute_age(dob, TODAY) == expected


def test_compute_age_leap_day() -> None:
    # Feb 29 birthday: not yet had it on Feb 28 of a common year
    assert compute_age(date(2016, 2, 29), date(2026, 2, 28)) == 9
    assert compute_age(date(2016, 2, 29), date(2026, 3, 1)) == 10


# ─────────────────────────── Eligibility ──────────────────────────────────────

class TestIsEligible:
    def test_inclusive_bounds(self, session_factory) -> None:
        s = session_factory(min_age=9, max_age=12)
        assert is_eligible(s, date(2017, 10, 19), "Male", TODAY)       # exactly 9
        assert is_eligible(s, date(2013, 10, 20), "Male", TODAY)       # 12, turns 13 tomorrow
        assert not is_eligible(s, date(2013, 10, 19), "Male", TODAY)   # 13 today
        assert not is_eligible(s, date(2017, 10, 20), "Male", TODAY)   # still 8

    def test_gender_must_match_exactly(self, session_factory) -> None:
        s = session_factory(gender="Female")
        assert not is_eligible(s, date(2015, 1, 1), "Male", TODAY)
        assert is_eligible(s, date(2015, 1, 1), "Female", TODAY)

    def test_coed_matches_no_athlete(self, session_factory) -> None:
        s = session_factory(gender="Coed")
        assert not is_eligible(s, date(2015, 1, 1), "Male", TODAY)
        assert not is_eligible(s, date(2015, 1, 1), "Female", TODAY)

    def test_no_dob(self, session_factory) -> None:
        assert not is_eligible(session_factory(), None, "Male", TODAY)

    def test_full_program_still_eligible(self, session_factory) -> None:
        s = session_factory(capacity=10, registered_count=10, status="Full")
        assert is_eligible(s, date(2015, 1, 1), "Male", TODAY)


class TestResolveEligibleSessions:
    def test_empty_without_dob(self, catalog) -> None:
        assert resolve_eligible_sessions(catalog, None, "Male", TODAY) == []

    def test_filters_by_age_and_gender(self, catalog) -> None:
        result = resolve_eligible_sessions(catalog, date(2015, 3, 1), "Male", TODAY)
        assert [s.id for s in result] == ["bb-u12"]

        result = resolve_eligible_sessions(catalog, date(2015, 3, 1), "Female", TODAY)
        assert [s.id for s in result] == ["vb-u12"]

    def test_nothing_for_toddler(self, catalog) -> None:
        assert resolve_eligible_sessions(catalog, date(2024, 1, 1), "Male", TODAY) == []

    def test_preserves_catalog_order(self, session_factory) -> None:
        sessions = [
            session_factory("b", min_age=10, max_age=12),
            session_factory("a", min_age=8, max_age=14),
            session_factory("c", min_age=11, max_age=11),
        ]
        result = resolve_eligible_sessions(sessions, date(2015, 3, 1), "Male", TODAY)
        assert [s.id for s in result] == ["b", "a", "c"]
