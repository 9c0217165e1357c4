"""
Backend protocol: the minimal browser surface the harness drives.

Anything that implements these coroutines (Playwright, a mock in tests) can
host a TestEnvironment.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import Protocol, runtime_checkable

from ..models import (
    BBox,
    ElementState,
    ExchangeMatcher,
    NetworkExchange,
    OptionChoice,
    PageResponse,
    Target,
)


@runtime_checkable
class BrowserBackend(Protocol):
    async def goto(self, url: str, *, timeout_ms: int) -> PageResponse | None: ...

    async def get_url(self) -> str: ...

    async def inspect(self, target: Target, *, attributes: Sequence[str] = ()) -> ElementState:
        """Observe a target's current state. ``count == 0`` means nothing matched."""
        ...

    async def inspect_all(
        self, target: Target, *, attributes: Sequence[str] = ()
    ) -> list[ElementState]: ...

    async def bounding_box(self, target: Target) -> BBox | None: ...

    async def click(self, target: Target, *, timeout_ms: int) -> None: ...

    async def fill(self, target: Target, text: str, *, timeout_ms: int) -> None: ...

    async def press(self, target: Target, key: str, *, timeout_ms: int) -> None: ...

    async def select_option(
        self, target: Target, choice: OptionChoice, *, timeout_ms: int
    ) -> list[str]: ...

    async def mouse_move(self, x: float, y: float) -> None: ...

    async def mouse_down(self) -> None: ...

    async def mouse_up(self) -> None: ...

    async def perform_and_wait_response(
        self,
        action: Callable[[], Awaitable[None]],
        matcher: ExchangeMatcher,
        *,
        timeout_ms: int,
    ) -> NetworkExchange:
        """
        Run ``action`` with a response listener already registered.

        The listener must be in place before ``action`` starts, otherwise a
        fast response can be missed.
        """
        ...

    async def screenshot_png(self) -> bytes: ...

    async def close(self) -> None: ...
