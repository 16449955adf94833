"""In-process command bus between the chat surface and whichever page is mounted.

Delivery is synchronous and at-most-once. A command dispatched while nobody is
subscribed is dropped, not queued: a page mounted later never sees it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Literal, Mapping, Optional

logger = logging.getLogger(__name__)

CommandType = Literal["open_article_wizard", "open_article_preview", "navigate"]


@dataclass(frozen=True)
class ChatCommand:
    type: CommandType
    payload: Mapping[str, str] = field(default_factory=dict)


CommandHandler = Callable[[ChatCommand], None]


class CommandBus:
    def __init__(self) -> None:
        self._handlers: List[CommandHandler] = []

    def subscribe(self, handler: CommandHandler) -> Callable[[], None]:
        """Register handler; returns a callable that removes it again."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def dispatch(self, command: ChatCommand) -> int:
        """
        Call every current subscriber in subscription order.

        Returns how many handlers received the command. A handler that raises is
        logged and skipped; the remaining handlers still run.
        """
        handlers = list(self._handlers)
        if not handlers:
            logger.debug("Dropping %s command: no subscribers", command.type)
            return 0
        delivered = 0
        for handler in handlers:
            try:
                handler(command)
            except Exception:
                logger.exception("Command handler failed for %s", command.type)
                continue
            delivered += 1
        return delivered

    def clear(self) -> None:
        self._handlers.clear()


def command_from_button(
    action: str, payload: Optional[Mapping[str, str]] = None
) -> Optional[ChatCommand]:
    """Translate a clicked chat button into a bus command, or None if it has no effect."""
    data: Dict[str, str] = dict(payload or {})
    article_id = data.get("articleId")
    if action == "preview" and article_id:
        return ChatCommand("open_article_preview", {"articleId": article_id})
    if action == "edit" and article_id:
        return ChatCommand("open_article_wizard", {"articleId": article_id})
    if action == "generate_content" and article_id:
        return ChatCommand(
            "open_article_wizard", {"articleId": article_id, "startStep": "generate"}
        )
    if action == "navigate" and data.get("path"):
        return ChatCommand("navigate", {"path": data["path"]})
    return None
