# services/identity.py
from typing import Awaitable, Callable, List, Optional

from models.schemas import Identity

IdentityHandler = Callable[[Optional[Identity]], Awaitable[None]]

class IdentityChannel:
    """
    Sign-in / sign-out notifications from the identity provider.

    Handlers are awaited in subscription order each time `publish` is
    called. `None` means the user signed out.
    """

    def __init__(self):
        self._handlers: List[IdentityHandler] = []
        self.current: Optional[Identity] = None

    def subscribe(self, handler: IdentityHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe():
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    async def publish(self, identity: Optional[Identity]) -> None:
        self.current = identity
        for handler in list(self._handlers):
            await handler(identity)
