"""Display information about order owners.

User identity lives outside this subsystem; the gateway forwards it with each
request. ``UserDirectory`` keeps what has been seen so the projector can
denormalise it onto order views.
"""

import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class UserInfo:
    user_id: str
    email: str | None = None
    name: str | None = None


class UserDirectory:
    def __init__(self) -> None:
        self._users: dict[str, UserInfo] = {}
        self._lock = threading.Lock()

    def remember(self, user_id: str, email: str | None = None, name: str | None = None) -> None:
        with self._lock:
            known = self._users.get(user_id)
            self._users[user_id] = UserInfo(
                user_id=user_id,
                email=email or (known.email if known else None),
                name=name or (known.name if known else None),
            )

    def lookup(self, user_id: str) -> UserInfo:
        return self._users.get(user_id) or UserInfo(user_id=user_id)
