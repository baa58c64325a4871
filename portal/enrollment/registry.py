"""
Per-user wizard ownership.

The dispatcher owns one registry and hands it to handlers as workflow data,
so no module-level state is involved. MemoryStorage-style semantics: wizards
are lost on restart and users simply start over.
"""
from __future__ import annotations

from typing import Callable, Dict, Optional, Sequence

from portal.enrollment.models import TrainingSession
from portal.enrollment.pricing import PricingConfig
from portal.enrollment.wizard import EnrollmentWizard


class WizardRegistry:
    def __init__(self, pricing: PricingConfig = PricingConfig()) -> None:
        self._pricing = pricing
        self._wizards: Dict[int, EnrollmentWizard] = {}

    def start(
        self,
        user_id: int,
        sessions: Sequence[TrainingSession],
        clock: Optional[Callable] = None,
    ) -> EnrollmentWizard:
        """Begin a fresh enrollment, replacing any unfinished one."""
        kwargs = {"clock": clock} if clock else {}
        wizard = EnrollmentWizard(sessions, self._pricing, **kwargs)
        self._wizards[user_id] = wizard
        return wizard

    def get(self, user_id: int) -> Optional[EnrollmentWizard]:
        return self._wizards.get(user_id)

    def discard(self, user_id: int) -> None:
        self._wizards.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._wizards)

    def __contains__(self, user_id: int) -> bool:
        return user_id in self._wizards
