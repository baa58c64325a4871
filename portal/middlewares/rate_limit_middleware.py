"""
Rate-limiting middleware.

Limits how many updates a single Telegram user can send within a rolling
window, so a parent hammering the "Pay" button cannot flood the bot.

Users over the limit get one throttle alert per rejected update and the
update is dropped.
"""
from __future__ import annotations

import time
from collections import defaultdict, deque
from typing import Any, Awaitable, Callable, Deque, Dict

from aiogram import BaseMiddleware
from aiogram.exceptions import TelegramAPIError
from aiogram.types import TelegramObject

THROTTLE_TEXT = "⏳ Too many requests. Please wait a moment and try again."


class RateLimitMiddleware(BaseMiddleware):
    """
    Sliding-window rate limiter.

    Parameters
    ----------
    rate   : maximum number of updates allowed per user per window
    period : window size in seconds
    clock  : monotonic time source (injectable for tests)
    """

    def __init__(
        self,
        rate: int = 30,
        period: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._rate   = rate
        self._period = period
        self._clock  = clock
        # user_id → timestamps, newest first
        self._history: Dict[int, Deque[float]] = defaultdict(deque)

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        user = data.get("event_from_user")
        if user is None:
            return await handler(event, data)

        now = self._clock()
        window = self._history[user.id]
        while window and now - window[-1] > self._period:
            window.pop()

        if len(window) >= self._rate:
            await self._throttle_response(data)
            return None

        window.appendleft(now)
        return await handler(event, data)

    async def _throttle_response(self, data: Dict[str, Any]) -> None:
        update = data.get("event_update")
        if update is None:
            return
        try:
            if update.callback_query:
                await update.callback_query.answer(THROTTLE_TEXT, show_alert=True)
            elif update.message:
                await update.message.answer(THROTTLE_TEXT)
        except TelegramAPIError:
            pass
