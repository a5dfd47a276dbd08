from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Message, TelegramObject

from coachtrack.domain.common.errors import PersistenceFailure
from coachtrack.infra.db.repo.profiles_sqlite import ProfilesRepo

logger = logging.getLogger(__name__)

OPEN_COMMANDS = ("/start",)


class ProfileMiddleware(BaseMiddleware):
    """
    Loads the sender's profile into data["profile"].
    Unregistered users may only use /start. This is a convenience gate, not
    an authorization layer.
    """

    def __init__(self, profiles: ProfilesRepo):
        self._profiles = profiles

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        user = None
        if isinstance(event, (Message, CallbackQuery)):
            user = event.from_user
        if user is None:
            return  # silently ignore

        try:
            profile = await self._profiles.get(user.id)
        except PersistenceFailure as e:
            logger.error("profile lookup failed for %s: %s", user.id, e)
            if isinstance(event, CallbackQuery):
                await event.answer(e.user_message, show_alert=True)
            else:
                await event.answer(e.user_message)
            return

        data["profile"] = profile
        if profile is not None:
            return await handler(event, data)

        text = (event.text or "").strip() if isinstance(event, Message) else ""
        command = text.split(maxsplit=1)[0].split("@")[0] if text else ""
        if command in OPEN_COMMANDS:
            return await handler(event, data)

        if isinstance(event, CallbackQuery):
            await event.answer("Önce /start ile kayıt olun.", show_alert=True)
        else:
            await event.answer("Önce /start ile kayıt olun.")
