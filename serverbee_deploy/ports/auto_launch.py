from __future__ import annotations

from typing import Protocol, runtime_checkable


class AutoLaunchError(RuntimeError):
    """The OS launch-at-login facility could not be built, queried or changed."""


@runtime_checkable
class AutoLaunchPort(Protocol):
    """Abstract interface for OS launch-at-login registration.

    Implementations raise ``AutoLaunchError`` on any OS failure.
    """

    def is_enabled(self) -> bool:
        """Whether the app is currently registered to start at login."""
        ...

    def enable(self) -> None:
        ...

    def disable(self) -> None:
        ...
