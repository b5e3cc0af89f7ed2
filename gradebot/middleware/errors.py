"""
Global error middleware to avoid silent crashes and to notify the user.
"""

import logging
from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import Message

log = logging.getLogger(__name__)


class ErrorMiddleware(BaseMiddleware):
    async def __call__(
        self,
        handler: Callable[[Message, Dict[str, Any]], Awaitable[Any]],
        event: Message,
        data: Dict[str, Any],
    ) -> Any:
        try:
            return await handler(event, data)
        except Exception:  # pragma: no cover - log + best-effort notify
            log.exception("Unhandled error while handling message %s", getattr(event, "message_id", "?"))
            try:
                await event.reply("An error occurred. Please try again.")
            except Exception:
                log.warning("Could not notify the user about the error")
            raise
