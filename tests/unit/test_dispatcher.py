from __future__ import annotations

import asyncio

import pytest

from mapsmoke.dispatcher import ActionDispatcher
from mapsmoke.environment import TestEnvironment
from mapsmoke.errors import (
    ActionRejected,
    FatalEnvironmentError,
    TargetNotFound,
    TimeoutExceeded,
)
from mapsmoke.models import (
    ActionKind,
    BBox,
    ElementState,
    EnvironmentConfig,
    ExchangeMatcher,
    NetworkExchange,
    OptionChoice,
    PageResponse,
    Point,
    target,
)
from mapsmoke.poller import ConditionPoller

READY = ElementState(count=1, visible=True, enabled=True)


class MockBackend:
    def __init__(self, elements: dict[str, ElementState] | None = None) -> None:
        self.elements = dict(elements or {})
        self.calls: list[tuple] = []
        self.click_error: Exception | None = None
        self.exchange_status = 201

    async def goto(self, url: str, *, timeout_ms: int) -> PageResponse | None:
        self.calls.append(("goto", url))
        return PageResponse(url=url, status=200, ok=True)

    async def get_url(self) -> str:
        return "https://example.test/"

    async def inspect(self, target, *, attributes=()) -> ElementState:
        return self.elements.get(target.selector, ElementState())

    async def inspect_all(self, target, *, attributes=()) -> list[ElementState]:
        state = await self.inspect(target)
        return [state] if state.attached else []

    async def bounding_box(self, target) -> BBox | None:
        if target.selector not in self.elements:
            return None
        return BBox(x=10, y=20, width=200, height=100)

    async def click(self, target, *, timeout_ms: int) -> None:
        if self.click_error is not None:
            raise self.click_error
        self.calls.append(("click", target.selector))

    async def fill(self, target, text: str, *, timeout_ms: int) -> None:
        self.calls.append(("fill", target.selector, text))

    async def press(self, target, key: str, *, timeout_ms: int) -> None:
        self.calls.append(("press", target.selector, key))

    async def select_option(self, target, choice: OptionChoice, *, timeout_ms: int) -> list[str]:
        self.calls.append(("select", target.selector, choice.index))
        return ["restaurants"]

    async def mouse_move(self, x: float, y: float) -> None:
        self.calls.append(("move", x, y))
        await asyncio.sleep(0)

    async def mouse_down(self) -> None:
        self.calls.append(("down",))
        await asyncio.sleep(0)

    async def mouse_up(self) -> None:
        self.calls.append(("up",))

    async def perform_and_wait_response(self, action, matcher, *, timeout_ms: int) -> NetworkExchange:
        self.calls.append(("listen", matcher.url_contains))
        await action()
        return NetworkExchange(
            url="https://example.test/places/",
            method=matcher.method,
            status=self.exchange_status,
            ok=200 <= self.exchange_status < 300,
        )

    async def screenshot_png(self) -> bytes:
        return b""

    async def close(self) -> None:
        return None


def make_env(backend: MockBackend) -> TestEnvironment:
    return TestEnvironment(config=EnvironmentConfig(), backend=backend)


def make_dispatcher(**kwargs) -> ActionDispatcher:
    poller = ConditionPoller(default_timeout_s=0.1, poll_s=0.01)
    return ActionDispatcher(poller, base_url="https://example.test/", action_timeout_s=0.1, **kwargs)


def test_resolve_url_joins_against_base() -> None:
    dispatcher = make_dispatcher()
    assert dispatcher.resolve_url(None) == "https://example.test/"
    assert dispatcher.resolve_url("#/categories") == "https://example.test/#/categories"
    assert dispatcher.resolve_url("https://other.test/x") == "https://other.test/x"


@pytest.mark.asyncio
async def test_navigate_returns_response() -> None:
    backend = MockBackend()
    result = await make_dispatcher().perform(make_env(backend), ActionKind.NAVIGATE)
    assert result.success
    assert result.response is not None and result.response.status == 200
    assert backend.calls == [("goto", "https://example.test/")]


@pytest.mark.asyncio
async def test_click_waits_for_readiness_then_dispatches_once() -> None:
    backend = MockBackend({"#zoom": ElementState(count=1, visible=False, enabled=True)})

    async def reveal() -> None:
        await asyncio.sleep(0.03)
        backend.elements["#zoom"] = READY

    task = asyncio.create_task(reveal())
    await make_dispatcher().perform(make_env(backend), ActionKind.CLICK, target("#zoom"))
    await task
    assert backend.calls == [("click", "#zoom")]


@pytest.mark.asyncio
async def test_missing_target_is_target_not_found() -> None:
    backend = MockBackend()
    with pytest.raises(TargetNotFound) as excinfo:
        await make_dispatcher().perform(make_env(backend), ActionKind.CLICK, target("#nope"))
    assert excinfo.value.details["selector"] == "#nope"
    assert backend.calls == []


@pytest.mark.asyncio
async def test_present_but_disabled_target_is_timeout() -> None:
    backend = MockBackend({"#submit": ElementState(count=1, visible=True, enabled=False)})
    with pytest.raises(TimeoutExceeded):
        await make_dispatcher().perform(make_env(backend), ActionKind.CLICK, target("#submit"))
    assert backend.calls == []


@pytest.mark.asyncio
async def test_backend_refusal_is_action_rejected() -> None:
    backend = MockBackend({"#btn": READY})
    backend.click_error = RuntimeError("Element is outside of the viewport")
    with pytest.raises(ActionRejected) as excinfo:
        await make_dispatcher().perform(make_env(backend), ActionKind.CLICK, target("#btn"))
    assert excinfo.value.details["error_type"] == "RuntimeError"


@pytest.mark.asyncio
async def test_closed_browser_during_click_is_fatal() -> None:
    backend = MockBackend({"#btn": READY})
    backend.click_error = RuntimeError("Target page, context or browser has been closed")
    with pytest.raises(FatalEnvironmentError):
        await make_dispatcher().perform(make_env(backend), ActionKind.CLICK, target("#btn"))


@pytest.mark.asyncio
async def test_actions_on_closed_environment_are_fatal() -> None:
    env = make_env(MockBackend({"#btn": READY}))
    await env.close()
    with pytest.raises(FatalEnvironmentError):
        await make_dispatcher().perform(env, ActionKind.CLICK, target("#btn"))


@pytest.mark.asyncio
async def test_targeted_kind_without_target_is_rejected_up_front() -> None:
    with pytest.raises(ValueError):
        await make_dispatcher().perform(make_env(MockBackend()), ActionKind.FILL, None, "x")


@pytest.mark.asyncio
async def test_fill_press_and_select() -> None:
    backend = MockBackend({"input": READY, "select": READY})
    env = make_env(backend)
    dispatcher = make_dispatcher()

    await dispatcher.perform(env, ActionKind.FILL, target("input"), "Mrvica")
    await dispatcher.perform(env, ActionKind.PRESS_KEY, target("input"), "Enter")
    result = await dispatcher.perform(
        env, ActionKind.SELECT_OPTION, target("select"), OptionChoice(index=1)
    )

    assert backend.calls == [
        ("fill", "input", "Mrvica"),
        ("press", "input", "Enter"),
        ("select", "select", 1),
    ]
    assert result.selected == ["restaurants"]


@pytest.mark.asyncio
async def test_drag_is_move_down_move_up_from_center() -> None:
    backend = MockBackend({".leaflet-container": READY})
    results = await make_dispatcher().drag(
        make_env(backend), target(".leaflet-container"), 100, 0
    )
    assert [r.kind for r in results] == [
        ActionKind.POINTER_MOVE,
        ActionKind.POINTER_DOWN,
        ActionKind.POINTER_MOVE,
        ActionKind.POINTER_UP,
    ]
    assert backend.calls == [("move", 110.0, 70.0), ("down",), ("move", 210.0, 70.0), ("up",)]


@pytest.mark.asyncio
async def test_drag_is_not_interleaved_with_other_actions() -> None:
    backend = MockBackend({".leaflet-container": READY, "#btn": READY})
    env = make_env(backend)
    dispatcher = make_dispatcher()

    await asyncio.gather(
        dispatcher.drag(env, target(".leaflet-container"), 50, 50),
        dispatcher.perform(env, ActionKind.CLICK, target("#btn")),
    )

    kinds = [c[0] for c in backend.calls]
    click_at = kinds.index("click")
    gesture = kinds[:click_at] if click_at else kinds[1:]
    assert gesture == ["move", "down", "move", "up"]


@pytest.mark.asyncio
async def test_pointer_move_without_bbox_is_rejected() -> None:
    backend = MockBackend({"#gone": READY})

    async def no_box(target):
        return None

    backend.bounding_box = no_box  # type: ignore[method-assign]
    with pytest.raises(ActionRejected):
        await make_dispatcher().perform(
            make_env(backend), ActionKind.POINTER_MOVE, target("#gone"), Point()
        )


@pytest.mark.asyncio
async def test_exchange_listener_is_armed_before_the_click() -> None:
    backend = MockBackend({".submit": READY})
    result = await make_dispatcher().perform_and_await_exchange(
        make_env(backend),
        ActionKind.CLICK,
        target(".submit"),
        None,
        ExchangeMatcher(url_contains="/places/", method="post"),
    )
    assert backend.calls == [("listen", "/places/"), ("click", ".submit")]
    assert result.exchange is not None
    assert result.exchange.method == "POST"
    assert result.exchange.ok


@pytest.mark.asyncio
async def test_exchange_timeout_is_timeout_exceeded() -> None:
    backend = MockBackend({".submit": READY})

    async def never(action, matcher, *, timeout_ms):
        await action()
        raise asyncio.TimeoutError()

    backend.perform_and_wait_response = never  # type: ignore[method-assign]
    with pytest.raises(TimeoutExceeded) as excinfo:
        await make_dispatcher().perform_and_await_exchange(
            make_env(backend),
            ActionKind.CLICK,
            target(".submit"),
            None,
            ExchangeMatcher(url_contains="/places/", method="POST"),
            exchange_timeout_s=0.05,
        )
    assert excinfo.value.details["url_contains"] == "/places/"
