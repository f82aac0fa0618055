from dataclasses import dataclass
from typing import Callable, List

from loguru import logger


@dataclass(frozen=True)
class Notification:
    level: str
    message: str


class Notifier:
    """User-facing messages; every notification is also a log line"""

    def __init__(self):
        self.notifications: List[Notification] = []
        self._subscribers: List[Callable[[Notification], None]] = []

    def subscribe(self, callback: Callable[[Notification], None]) -> None:
        self._subscribers.append(callback)

    def notify(self, level: str, message: str) -> Notification:
        notification = Notification(level, message)
        self.notifications.append(notification)
        logger.log("ERROR" if level == "error" else "SUCCESS" if level == "success" else "INFO", message)
        for callback in self._subscribers:
            callback(notification)
        return notification

    def success(self, message: str) -> Notification:
        return self.notify("success", message)

    def error(self, message: str) -> Notification:
        return self.notify("error", message)

    def info(self, message: str) -> Notification:
        return self.notify("info", message)

    @property
    def messages(self) -> List[str]:
        return [n.message for n in self.notifications]

    def clear(self) -> None:
        self.notifications.clear()
