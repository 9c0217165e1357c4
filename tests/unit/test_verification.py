from __future__ import annotations

import pytest

from mapsmoke.models import (
    ElementState,
    NetworkExchange,
    PageResponse,
    StatusClass,
    target,
)
from mapsmoke.verification import (
    CheckContext,
    actionable,
    all_have_class,
    all_of,
    attribute_matches,
    describe_check,
    exchange_ok,
    hidden,
    located_shows_text,
    response_status_in,
    text_contains,
    text_not_empty,
    url_equals,
    url_matches,
    visible,
)


class MockBackend:
    def __init__(self, states: dict[str, list[ElementState]], url: str = "https://www.navigator.ba/#/categories") -> None:
        self.states = states
        self.url = url

    async def get_url(self) -> str:
        return self.url

    async def inspect(self, target, *, attributes=()) -> ElementState:
        found = self.states.get(target.selector, [])
        return found[0].model_copy(update={"count": len(found)}) if found else ElementState()

    async def inspect_all(self, target, *, attributes=()) -> list[ElementState]:
        return list(self.states.get(target.selector, []))


def ctx_for(states: dict[str, list[ElementState]], **kwargs) -> CheckContext:
    return CheckContext(backend=MockBackend(states), **kwargs)


def shown(text: str | None = None, **attrs: str) -> ElementState:
    return ElementState(count=1, visible=True, enabled=True, text=text, attributes=attrs)


@pytest.mark.asyncio
async def test_visible_and_hidden() -> None:
    ctx = ctx_for({".leaflet-container": [shown()]})
    assert (await visible(target(".leaflet-container"))(ctx)).passed
    missing = await visible(target(".nope"))(ctx)
    assert not missing.passed
    assert missing.details["count"] == 0
    assert (await hidden(target(".nope"))(ctx)).passed


@pytest.mark.asyncio
async def test_actionable_can_ignore_enabled() -> None:
    ctx = ctx_for({"a": [ElementState(count=1, visible=True, enabled=False)]})
    assert not (await actionable(target("a"))(ctx)).passed
    assert (await actionable(target("a"), require_enabled=False)(ctx)).passed


@pytest.mark.asyncio
async def test_text_checks() -> None:
    ctx = ctx_for({".popup": [shown("Mrvica, Ferhadija 12")], ".empty": [shown("  ")]})
    assert (await text_contains(target(".popup"), "Mrvica")(ctx)).passed
    assert not (await text_contains(target(".popup"), "Zmaj")(ctx)).passed
    assert not (await text_not_empty(target(".empty"))(ctx)).passed


@pytest.mark.asyncio
async def test_attribute_matches() -> None:
    ctx = ctx_for({".website a": [shown(href="http://mrvica.ba")]})
    assert (await attribute_matches(target(".website a"), "href", r"http")(ctx)).passed
    assert not (await attribute_matches(target(".website a"), "href", r"^ftp")(ctx)).passed


@pytest.mark.asyncio
async def test_all_have_class_reports_offenders() -> None:
    places = [shown(**{"class": "place food"}), shown(**{"class": "place drinks"})]
    outcome = await all_have_class(target("li.place"), "food")(ctx_for({"li.place": places}))
    assert not outcome.passed
    assert outcome.details["offending_indices"] == [1]

    empty = await all_have_class(target("li.place"), "food")(ctx_for({}))
    assert not empty.passed


@pytest.mark.asyncio
async def test_url_checks() -> None:
    ctx = ctx_for({})
    assert (await url_equals("https://www.navigator.ba/#/categories")(ctx)).passed
    assert (await url_matches(r"#/categories$")(ctx)).passed
    assert not (await url_equals("https://www.navigator.ba/")(ctx)).passed


@pytest.mark.asyncio
async def test_response_and_exchange_checks() -> None:
    ctx = ctx_for({})
    assert not (await response_status_in(StatusClass.parse("2xx"))(ctx)).passed
    assert not (await exchange_ok()(ctx)).passed

    ctx.last_response = PageResponse(url="https://www.navigator.ba/", status=200, ok=True)
    ctx.last_exchange = NetworkExchange(url="https://www.navigator.ba/places/", method="POST", status=422, ok=False)
    assert (await response_status_in(StatusClass.parse(200))(ctx)).passed
    failed = await exchange_ok()(ctx)
    assert not failed.passed
    assert failed.details["status"] == 422
    assert (await exchange_ok(StatusClass.parse("4xx"))(ctx)).passed


@pytest.mark.asyncio
async def test_all_of_stops_at_first_failure() -> None:
    ctx = ctx_for({"a": [shown("x")]})
    check = all_of(visible(target("a")), visible(target("b")), visible(target("c")))
    outcome = await check(ctx)
    assert not outcome.passed
    assert len(outcome.details["checks"]) == 2


def test_checks_describe_themselves() -> None:
    assert describe_check(visible(target(".leaflet-container"))) == "visible(.leaflet-container)"
    assert describe_check(exchange_ok()) == "exchange_ok(ok)"


@pytest.mark.asyncio
async def test_located_shows_text_reads_the_stored_state() -> None:
    ctx = ctx_for({}, located={"place_name": shown("Mrvica"), "blank": shown("  ")})

    assert (await located_shows_text("place_name")(ctx)).passed
    blank = await located_shows_text("blank")(ctx)
    assert not blank.passed
    assert blank.reason == "blank has no text"
    missing = await located_shows_text("address")(ctx)
    assert not missing.passed
    assert missing.details["located"] == ["blank", "place_name"]
