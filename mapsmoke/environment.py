"""
Isolated test environments.

A TestEnvironment is one browsing context (cookies, storage, permissions,
viewport, locale) owned by exactly one scenario run. Environments are created
by an EnvironmentFactory and closed exactly once.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import TYPE_CHECKING, Literal, Protocol

from .backends.playwright_backend import PlaywrightBackend
from .backends.protocol import BrowserBackend
from .errors import as_fatal
from .models import EnvironmentConfig

if TYPE_CHECKING:
    from playwright.async_api import Browser, Playwright

logger = logging.getLogger(__name__)

BrowserName = Literal["chromium", "firefox", "webkit"]

_env_ids = itertools.count(1)


class TestEnvironment:
    """
    One isolated browsing context.

    Attributes:
        env_id: Unique identifier (never reused within a process)
        config: The effective EnvironmentConfig
        backend: Backend used to drive the page
        action_lock: Serialises actions so composite gestures never interleave
    """

    # Not a pytest test class despite the name.
    __test__ = False

    def __init__(self, *, config: EnvironmentConfig, backend: BrowserBackend) -> None:
        self.env_id = f"env-{next(_env_ids)}"
        self.config = config
        self.backend = backend
        self.action_lock = asyncio.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Close the underlying context. Later calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        logger.debug("closing environment %s", self.env_id)
        await self.backend.close()


class EnvironmentFactory(Protocol):
    async def create(self, config: EnvironmentConfig) -> TestEnvironment: ...


class PlaywrightEnvironmentFactory:
    """
    Creates one fresh BrowserContext + Page per environment.

    The browser process is launched lazily on first use and shared across
    environments; contexts are never shared.

    Usage:
        async with PlaywrightEnvironmentFactory(browser="chromium") as factory:
            env = await factory.create(EnvironmentConfig(locale="en-US"))
            ...
            await env.close()
    """

    def __init__(
        self,
        *,
        browser: BrowserName = "chromium",
        headless: bool = True,
        default_timeout_ms: int = 5_000,
        navigation_timeout_ms: int = 30_000,
    ) -> None:
        self.browser_name = browser
        self.headless = headless
        self.default_timeout_ms = default_timeout_ms
        self.navigation_timeout_ms = navigation_timeout_ms
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._start_lock = asyncio.Lock()

    async def start(self) -> None:
        async with self._start_lock:
            if self._browser is not None:
                return
            from playwright.async_api import async_playwright

            self._playwright = await async_playwright().start()
            launcher = getattr(self._playwright, self.browser_name)
            self._browser = await launcher.launch(headless=self.headless)
            logger.info("launched %s (headless=%s)", self.browser_name, self.headless)

    async def stop(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def __aenter__(self) -> PlaywrightEnvironmentFactory:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def create(self, config: EnvironmentConfig) -> TestEnvironment:
        if self._browser is None:
            await self.start()
        assert self._browser is not None
        try:
            context = await self._browser.new_context(**config.to_context_options())
        except Exception as exc:
            raise as_fatal(exc, context="could not create browser context") from exc
        try:
            context.set_default_timeout(self.default_timeout_ms)
            context.set_default_navigation_timeout(self.navigation_timeout_ms)
            page = await context.new_page()
        except Exception as exc:
            await context.close()
            raise as_fatal(exc, context="could not open page") from exc
        return TestEnvironment(config=config, backend=PlaywrightBackend(page, context))
