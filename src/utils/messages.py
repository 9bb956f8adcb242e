from typing import FrozenSet, Optional

from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    Posted when the user asks to log out; the app performs the logout.
    """

    bubble = True

    def __init__(self, reason: Optional[str] = None) -> None:
        super().__init__()
        self.reason = reason


class SessionChangedMessage(Message):
    """
    Fired by the app after login, logout or forced expiry.
    Screens re-render role-dependent affordances on it.
    """

    bubble = True


class CollectionsRefreshedMessage(Message):
    """
    Fired whenever one of the cached collections was replaced.
    Posted to the active screen, which re-renders the affected tables.
    """

    bubble = True

    def __init__(self, collections: FrozenSet[str]) -> None:
        super().__init__()
        self.collections = collections
