"""
Playwright implementation of the BrowserBackend protocol.

Wraps a single ``playwright.async_api.Page`` (and the BrowserContext that owns
it). Targets are resolved into locators on every call so a re-rendered DOM
is always queried fresh.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING

from ..models import (
    BBox,
    ElementState,
    ExchangeMatcher,
    NetworkExchange,
    OptionChoice,
    PageResponse,
    Target,
)

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext, Locator, Page


class PlaywrightBackend:
    def __init__(self, page: Page, context: BrowserContext | None = None) -> None:
        self._page = page
        self._context = context

    @property
    def page(self) -> Page:
        return self._page

    def _locator(self, target: Target) -> Locator:
        if target.within is not None:
            base = self._locator(target.within)
        else:
            base = self._page
        if target.has_text is not None:
            loc = base.locator(target.selector, has_text=target.has_text)
        else:
            loc = base.locator(target.selector)
        if target.nth is not None:
            loc = loc.nth(target.nth)
        return loc

    async def goto(self, url: str, *, timeout_ms: int) -> PageResponse | None:
        response = await self._page.goto(url, timeout=timeout_ms)
        if response is None:
            # Same-document navigation (hash change) has no response.
            return None
        return PageResponse(url=response.url, status=response.status, ok=response.ok)

    async def get_url(self) -> str:
        return self._page.url

    async def _state(self, loc: Locator, count: int, attributes: Sequence[str]) -> ElementState:
        if count == 0:
            return ElementState(count=0)
        visible = await loc.is_visible()
        enabled = await loc.is_enabled() if visible else False
        text = await loc.text_content()
        attrs: dict[str, str | None] = {}
        for name in attributes:
            attrs[name] = await loc.get_attribute(name)
        return ElementState(
            count=count, visible=visible, enabled=enabled, text=text, attributes=attrs
        )

    async def inspect(self, target: Target, *, attributes: Sequence[str] = ()) -> ElementState:
        loc = self._locator(target)
        count = await loc.count()
        if target.nth is None and count > 1:
            # Non-strict: report on the first match, keep the total.
            loc = loc.first
        return await self._state(loc, count, attributes)

    async def inspect_all(
        self, target: Target, *, attributes: Sequence[str] = ()
    ) -> list[ElementState]:
        loc = self._locator(target)
        states: list[ElementState] = []
        for item in await loc.all():
            states.append(await self._state(item, 1, attributes))
        return states

    async def bounding_box(self, target: Target) -> BBox | None:
        box = await self._locator(target).first.bounding_box()
        if box is None:
            return None
        return BBox(**box)

    async def click(self, target: Target, *, timeout_ms: int) -> None:
        await self._locator(target).first.click(timeout=timeout_ms)

    async def fill(self, target: Target, text: str, *, timeout_ms: int) -> None:
        await self._locator(target).first.fill(text, timeout=timeout_ms)

    async def press(self, target: Target, key: str, *, timeout_ms: int) -> None:
        await self._locator(target).first.press(key, timeout=timeout_ms)

    async def select_option(
        self, target: Target, choice: OptionChoice, *, timeout_ms: int
    ) -> list[str]:
        loc = self._locator(target).first
        if choice.value is not None:
            return await loc.select_option(value=choice.value, timeout=timeout_ms)
        if choice.label is not None:
            return await loc.select_option(label=choice.label, timeout=timeout_ms)
        return await loc.select_option(index=choice.index, timeout=timeout_ms)

    async def mouse_move(self, x: float, y: float) -> None:
        await self._page.mouse.move(x, y)

    async def mouse_down(self) -> None:
        await self._page.mouse.down()

    async def mouse_up(self) -> None:
        await self._page.mouse.up()

    async def perform_and_wait_response(
        self,
        action: Callable[[], Awaitable[None]],
        matcher: ExchangeMatcher,
        *,
        timeout_ms: int,
    ) -> NetworkExchange:
        async with self._page.expect_response(
            lambda r: matcher.matches(r.url, r.request.method), timeout=timeout_ms
        ) as info:
            await action()
        response = await info.value
        return NetworkExchange(
            url=response.url,
            method=response.request.method,
            status=response.status,
            ok=response.ok,
        )

    async def screenshot_png(self) -> bytes:
        return await self._page.screenshot(type="png")

    async def close(self) -> None:
        if self._context is not None:
            await self._context.close()
        else:
            await self._page.close()
