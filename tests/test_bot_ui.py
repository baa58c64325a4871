"""
Unit tests — Bot shell: step rendering, keyboards and rate limiting.

Nothing here talks to Telegram; keyboards are inspected through their packed
callback data and the middleware is driven with a stub handler.
"""
from __future__ import annotations

from types import SimpleNamespace

import pytest

from portal.enrollment import WizardStep
from portal.handlers.enrollment import is_stale, render
from portal.keyboards import WizardCb, program_kb, step_kb
from portal.middlewares import RateLimitMiddleware


def _actions(markup) -> list:
    actions = []
    for row in markup.inline_keyboard:
        for button in row:
            data = button.callback_data or ""
            if data.startswith("wz:"):
                actions.append(data.split(":")[1])
            else:
                actions.append(data)
    return actions


# ─────────────────────────── Rendering ────────────────────────────────────────

class TestRender:
    def test_athlete_step(self, wizard, athlete_filler) -> None:
        athlete_filler(wizard)
        text, kb = render(wizard)
        assert "Athlete Info" in text
        assert "Jordan Smith" in text
        assert "(age 11)" in text
        assert "$120.00" in text
        assert "next" in _actions(kb)

    def test_no_programs_notice(self, wizard) -> None:
        wizard.update_athlete(0, "dob", "2024-01-01")
        text, _ = render(wizard)
        assert "No programs available" in text

    def test_touched_errors_are_shown(self, wizard) -> None:
        wizard.advance()
        text, _ = render(wizard)
        assert "Athlete name is required" in text

    def test_discount_line_only_for_siblings(self, wizard, athlete_filler) -> None:
        athlete_filler(wizard)
        assert "Sibling discount" not in render(wizard)[0]
        wizard.add_athlete()
        assert "Sibling discount" in render(wizard)[0]

    def test_typed_text_is_html_escaped(self, wizard, athlete_filler) -> None:
        athlete_filler(wizard, name="Sam <Jr> & Co")
        assert "Sam &lt;Jr&gt; &amp; Co" in render(wizard)[0]

        assert wizard.advance()
        wizard.update_field("parent_name", "O'Neil <Jane>")
        wizard.update_field("email", "jane_doe@example.com")
        text, _ = render(wizard)
        assert "jane_doe@example.com" in text
        assert "O'Neil &lt;Jane&gt;" in text
        assert "<Jane>" not in text
        assert "<b>Step 2/4" in text

    def test_payment_step(self, wizard, to_payment) -> None:
        to_payment(wizard)
        text, kb = render(wizard)
        assert wizard.current_step is WizardStep.PAYMENT
        assert "Jordan Smith" in text
        assert "pay" in _actions(kb)

    def test_processing_hides_pay_button(self, wizard, to_payment) -> None:
        to_payment(wizard)
        wizard._guard.try_begin()
        text, kb = render(wizard)
        assert "Processing" in text
        assert _actions(kb) == ["noop"]

    async def test_receipt(self, wizard, to_payment, card_filler, gateway) -> None:
        to_payment(wizard)
        card_filler(wizard)
        await wizard.submit(gateway)
        text, kb = render(wizard)
        assert "Check your email for login credentials" in text
        assert "Basketball U12" in text
        assert _actions(kb) == ["dashboard"]


class TestKeyboards:
    def test_single_athlete_has_no_remove(self, wizard) -> None:
        assert "remove" not in _actions(step_kb(wizard))

    def test_siblings_can_be_removed(self, wizard) -> None:
        wizard.add_athlete()
        assert "remove" in _actions(step_kb(wizard))

    def test_program_kb_marks_selection(self, catalog) -> None:
        kb = program_kb(0, catalog[:2], selected_id="bb-u16")
        texts = [row[0].text for row in kb.inline_keyboard[:2]]
        assert texts[0].startswith("Basketball U12")
        assert texts[1].startswith("✅ Basketball U16")


# ─────────────────────────── Rate limit ───────────────────────────────────────

class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestRateLimit:
    @pytest.fixture
    def calls(self):
        return []

    @pytest.fixture
    def handler(self, calls):
        async def _handler(event, data):
            calls.append(event)
            return "ok"
        return _handler

    async def test_throttles_after_rate(self, handler, calls) -> None:
        clock = _Clock()
        mw = RateLimitMiddleware(rate=2, period=10.0, clock=clock)
        data = {"event_from_user": SimpleNamespace(id=1)}

        assert await mw(handler, "a", data) == "ok"
        assert await mw(handler, "b", data) == "ok"
        assert await mw(handler, "c", data) is None
        assert calls == ["a", "b"]

    async def test_window_slides(self, handler, calls) -> None:
        clock = _Clock()
        mw = RateLimitMiddleware(rate=1, period=10.0, clock=clock)
        data = {"event_from_user": SimpleNamespace(id=1)}

        await mw(handler, "a", data)
        clock.now = 11.0
        assert await mw(handler, "b", data) == "ok"

    async def test_users_are_independent(self, handler, calls) -> None:
        mw = RateLimitMiddleware(rate=1, period=10.0, clock=_Clock())
        await mw(handler, "a", {"event_from_user": SimpleNamespace(id=1)})
        assert await mw(handler, "b", {"event_from_user": SimpleNamespace(id=2)}) == "ok"

    async def test_anonymous_updates_pass(self, handler, calls) -> None:
        mw = RateLimitMiddleware(rate=0, period=10.0, clock=_Clock())
        assert await mw(handler, "a", {}) == "ok"


# ─────────────────────────── Stale buttons ────────────────────────────────────

class TestStaleButtons:
    def test_waiver_toggle_ignored_on_payment(self, wizard, to_payment) -> None:
        to_payment(wizard)
        assert is_stale(wizard, WizardCb(action="waiver"))
        assert is_stale(wizard, WizardCb(action="edit", value="email"))
        assert not is_stale(wizard, WizardCb(action="edit", value="cvc"))
        assert not is_stale(wizard, WizardCb(action="pay"))

    def test_next_remembers_its_step(self, wizard, athlete_filler) -> None:
        athlete_filler(wizard)
        packed = [
            b.callback_data
            for row in step_kb(wizard).inline_keyboard for b in row
            if (b.callback_data or "").startswith("wz:next:")
        ][0]
        next_on_athletes = WizardCb(action="next", value=packed.split(":")[3])
        assert next_on_athletes.value == str(WizardStep.ATHLETE_INFO.value)
        assert not is_stale(wizard, next_on_athletes)
        assert wizard.advance()
        assert is_stale(wizard, next_on_athletes)

    def test_next_without_step_is_stale(self, wizard) -> None:
        assert is_stale(wizard, WizardCb(action="next"))

    def test_removed_athlete_index(self, wizard) -> None:
        wizard.add_athlete()
        data = WizardCb(action="program_menu", idx=1)
        assert not is_stale(wizard, data)
        wizard.remove_athlete(1)
        assert is_stale(wizard, data)
        assert is_stale(wizard, WizardCb(action="edit", idx=1, value="dob"))

    def test_view_is_always_allowed(self, wizard, to_payment) -> None:
        to_payment(wizard)
        assert not is_stale(wizard, WizardCb(action="view"))
