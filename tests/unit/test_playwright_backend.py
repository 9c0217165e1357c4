from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from mapsmoke.backends import BrowserBackend, PlaywrightBackend
from mapsmoke.models import ExchangeMatcher, OptionChoice, target


class FakeResponse:
    def __init__(self, url: str, method: str, status: int) -> None:
        self.url = url
        self.request = MagicMock(method=method)
        self.status = status
        self.ok = 200 <= status < 300


class FakeResponseInfo:
    def __init__(self, response: FakeResponse) -> None:
        self._response = response

    @property
    def value(self):
        async def _value():
            return self._response

        return _value()


class FakeExpectResponse:
    def __init__(self, response: FakeResponse, events: list[str]) -> None:
        self._response = response
        self._events = events

    async def __aenter__(self) -> FakeResponseInfo:
        self._events.append("armed")
        return FakeResponseInfo(self._response)

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


def test_playwright_backend_satisfies_protocol() -> None:
    assert isinstance(PlaywrightBackend(MagicMock()), BrowserBackend)


def test_locator_chain_follows_target() -> None:
    page = MagicMock()
    backend = PlaywrightBackend(page)

    backend._locator(target(".place_details").locate(".name", has_text="Mrvica").first())

    page.locator.assert_called_once_with(".place_details")
    outer = page.locator.return_value
    outer.locator.assert_called_once_with(".name", has_text="Mrvica")
    outer.locator.return_value.nth.assert_called_once_with(0)


@pytest.mark.asyncio
async def test_goto_maps_response_and_hash_navigation() -> None:
    page = MagicMock()
    page.goto = AsyncMock(return_value=FakeResponse("https://www.navigator.ba/", "GET", 200))
    backend = PlaywrightBackend(page)

    response = await backend.goto("https://www.navigator.ba/", timeout_ms=1000)
    assert response is not None and response.status == 200 and response.ok

    page.goto = AsyncMock(return_value=None)
    assert await backend.goto("https://www.navigator.ba/#/categories", timeout_ms=1000) is None


@pytest.mark.asyncio
async def test_inspect_missing_and_multiple_matches() -> None:
    page = MagicMock()
    loc = page.locator.return_value
    backend = PlaywrightBackend(page)

    loc.count = AsyncMock(return_value=0)
    assert (await backend.inspect(target(".nope"))).count == 0

    loc.count = AsyncMock(return_value=3)
    loc.first.is_visible = AsyncMock(return_value=True)
    loc.first.is_enabled = AsyncMock(return_value=True)
    loc.first.text_content = AsyncMock(return_value="Mrvica")
    loc.first.get_attribute = AsyncMock(return_value="place food")
    state = await backend.inspect(target("li.place"), attributes=("class",))

    assert state.count == 3
    assert state.visible and state.enabled
    assert state.text == "Mrvica"
    assert state.attributes == {"class": "place food"}


@pytest.mark.asyncio
async def test_select_option_by_index() -> None:
    page = MagicMock()
    first = page.locator.return_value.first
    first.select_option = AsyncMock(return_value=["12"])
    backend = PlaywrightBackend(page)

    selected = await backend.select_option(target("select"), OptionChoice(index=1), timeout_ms=500)

    assert selected == ["12"]
    first.select_option.assert_awaited_once_with(index=1, timeout=500)


@pytest.mark.asyncio
async def test_response_listener_is_armed_before_action() -> None:
    events: list[str] = []
    predicates = []
    response = FakeResponse("https://www.navigator.ba/api/places/", "POST", 201)
    page = MagicMock()

    def expect_response(predicate, timeout):
        predicates.append(predicate)
        return FakeExpectResponse(response, events)

    page.expect_response = expect_response
    backend = PlaywrightBackend(page)

    async def submit() -> None:
        events.append("clicked")

    exchange = await backend.perform_and_wait_response(
        submit, ExchangeMatcher(url_contains="/places/", method="POST"), timeout_ms=1000
    )

    assert events == ["armed", "clicked"]
    assert exchange.status == 201 and exchange.ok
    assert predicates[0](response) is True
    assert predicates[0](FakeResponse("https://www.navigator.ba/api/places/", "GET", 200)) is False


@pytest.mark.asyncio
async def test_close_closes_context_when_owned() -> None:
    page = MagicMock()
    page.close = AsyncMock()
    context = MagicMock()
    context.close = AsyncMock()

    await PlaywrightBackend(page, context).close()
    context.close.assert_awaited_once()
    page.close.assert_not_called()

    await PlaywrightBackend(page).close()
    page.close.assert_awaited_once()
