"""
Navigator.ba smoke catalog.

Site literals (landing URL, texts, form data, device settings) live in
NavigatorExpectations so the same catalog can run against a staging copy or a
different locale build.

Usage:
    scenarios = build_scenarios(NavigatorExpectations(search_term="Vijećnica"))
    report = await executor.run_all(scenarios)
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..models import (
    ActionKind,
    EnvironmentConfig,
    ExchangeMatcher,
    Geolocation,
    OptionChoice,
    StatusClass,
    Target,
    Viewport,
    target,
)
from ..steps import (
    OPTIONAL,
    Act,
    ActAndAwaitExchange,
    Assert,
    AwaitCondition,
    Drag,
    Locate,
    Navigate,
    Scenario,
    Step,
    click,
    fill,
    press,
)
from ..verification import (
    all_have_class,
    attribute_matches,
    enabled,
    exchange_ok,
    located_shows_text,
    response_status_in,
    text_contains,
    text_not_empty,
    url_equals,
    visible,
)

IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 14_0 like Mac OS X) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/14.0 Mobile/15E148 Safari/604.1"
)

# Selectors
MAP = target(".leaflet-container")
ZOOM_IN = target(".leaflet-control-zoom-in")
ZOOM_OUT = target(".leaflet-control-zoom-out")
LOCATE_ME = target(".leaflet-control-focusonuser-button")
SEARCH_INPUT = target('input[type="search"], input[id^="ember"]')
SEARCH_RESULTS = target("ul.menu_content_list.search-results")
POPUP = target(".leaflet-popup-content, .popup-content")
FOOD_CATEGORY = target("ul.menu_content_list.categories li.food a")
FOOD_PLACES = target("ul.menu_content_list > li.place.food")
DETAILS_PANEL = target(".place_details, .left-menu-pane.place_details")
CREATE_PLACE_LINK = target('a[href="#/create-place"]')
ADD_CATEGORY = target('div.category-selector-container button.btn.btn-small[type="button"]')
CATEGORY_SELECT = target(".category-selector-view .span3 select")
SUBMIT = target(".submit-container button.btn-success")
MOBILE_MENU = target("#mapBtnMenu")
LEFT_NAV = target("ul.navigation.left")


def _language_link(code: str) -> Target:
    return target(f'ul.navigation.languages a[data-ga-label="{code}"]')


@dataclass(frozen=True)
class LanguageStrings:
    code: str
    search_placeholder: str
    create_place: str
    feedback: str


@dataclass(frozen=True)
class NavigatorExpectations:
    """Site-specific literals the catalog asserts against."""

    landing_url: str = "https://www.navigator.ba/#/categories"
    landing_status: str | int = 200
    exchange_status: str | int | None = None
    search_term: str = "Mrvica"
    english: LanguageStrings = LanguageStrings(
        code="en",
        search_placeholder="Search street or place",
        create_place="Create Place",
        feedback="Suggest features - Report a problem",
    )
    bosnian: LanguageStrings = LanguageStrings(
        code="bs",
        search_placeholder="Traži ulicu ili objekat",
        create_place="Kreiraj objekat",
        feedback="Predloži ideju - Pošalji komentar",
    )
    place_form: dict[str, str] = field(
        default_factory=lambda: {
            'input[name="poi[name]"]': "Test Place Name",
            'input[name="poi[city_name]"]': "Sarajevo",
            'input[name="poi[zip_code]"]': "71000",
            'input[name="poi[street_name]"]': "Titova",
            'input[name="poi[house_number]"]': "5A",
            'textarea[name="poi[description]"]': "This is a test place created by automated test.",
        }
    )
    place_contact: dict[str, str] = field(
        default_factory=lambda: {
            "#working_hours_0_0": "08:00",
            "#working_hours_0_1": "16:00",
            "#poi_phone": "033222333",
            "#poi_web": "http://testplace.ba",
            "#poi_email": "info@testplace.ba",
        }
    )
    category_index: int = 1
    create_place_exchange: ExchangeMatcher = field(
        default_factory=lambda: ExchangeMatcher(url_contains="/places/", method="POST")
    )
    geolocation: Geolocation = field(
        default_factory=lambda: Geolocation(latitude=43.8563, longitude=18.4131)
    )
    geolocation_locale: str = "en-US"
    mobile_viewport: Viewport = field(default_factory=lambda: Viewport(width=375, height=812))
    mobile_user_agent: str = IPHONE_UA
    drag_dx: float = 100.0


def _homepage(exp: NavigatorExpectations) -> Scenario:
    return Scenario(
        id="TC001",
        title="Verify Homepage Load",
        steps=(
            Navigate(),
            AwaitCondition(url_equals(exp.landing_url)),
            Assert(response_status_in(StatusClass.parse(exp.landing_status))),
        ),
    )


def _map_display() -> Scenario:
    return Scenario(
        id="TC002",
        title="Verify Map Display",
        steps=(Navigate(), AwaitCondition(visible(MAP))),
    )


def _map_zoom() -> Scenario:
    return Scenario(
        id="TC003",
        title="Verify Map Zoom",
        steps=(
            Navigate(),
            AwaitCondition(visible(ZOOM_IN)),
            AwaitCondition(visible(ZOOM_OUT)),
            click(ZOOM_IN),
            click(ZOOM_OUT),
            AwaitCondition(enabled(ZOOM_IN)),
            AwaitCondition(enabled(ZOOM_OUT)),
        ),
    )


def _map_drag(exp: NavigatorExpectations) -> Scenario:
    return Scenario(
        id="TC004",
        title="Verify Map Dragging",
        steps=(
            Navigate(),
            AwaitCondition(visible(MAP)),
            Drag(MAP, dx=exp.drag_dx, dy=0),
            AwaitCondition(visible(MAP)),
        ),
    )


def _locate_me(exp: NavigatorExpectations) -> Scenario:
    return Scenario(
        id="TC005",
        title="Test Geolocation Permission Granted",
        environment=EnvironmentConfig(
            permissions=("geolocation",),
            geolocation=exp.geolocation,
            locale=exp.geolocation_locale,
        ),
        steps=(
            Navigate(),
            AwaitCondition(visible(LOCATE_ME)),
            click(LOCATE_ME),
        ),
    )


def _search(exp: NavigatorExpectations) -> Scenario:
    result = SEARCH_RESULTS.locate("li .name", has_text=exp.search_term).first()
    return Scenario(
        id="TC007",
        title="Search Valid Location",
        steps=(
            Navigate(),
            fill(SEARCH_INPUT.first(), exp.search_term),
            press(SEARCH_INPUT.first(), "Enter"),
            AwaitCondition(visible(SEARCH_RESULTS)),
            AwaitCondition(visible(result)),
            click(result),
            AwaitCondition(visible(POPUP)),
            AwaitCondition(text_contains(POPUP, exp.search_term)),
        ),
    )


def _category_filter() -> Scenario:
    return Scenario(
        id="TC009",
        title="Filter by Category",
        steps=(
            Navigate(),
            AwaitCondition(visible(FOOD_CATEGORY)),
            click(FOOD_CATEGORY),
            AwaitCondition(visible(FOOD_PLACES.first())),
            Assert(all_have_class(FOOD_PLACES, "food")),
        ),
    )


def _place_details() -> Scenario:
    name = DETAILS_PANEL.locate(".header-bar .name")
    category = DETAILS_PANEL.locate(".profile-image-link .categories")
    address = DETAILS_PANEL.locate(".address, .place-info .address")
    phone = DETAILS_PANEL.locate(".phone, .place-info .phone")
    email = DETAILS_PANEL.locate(".email, .place-info .email")
    hours = DETAILS_PANEL.locate(".opening-hours, .place-info .hours")
    website = DETAILS_PANEL.locate(".website a, .place-info a[href*='http']")
    return Scenario(
        id="TC010",
        title="View Place Details",
        steps=(
            Navigate(),
            AwaitCondition(visible(FOOD_CATEGORY)),
            click(FOOD_CATEGORY),
            AwaitCondition(visible(FOOD_PLACES.first())),
            click(FOOD_PLACES.first().locate(".name")),
            AwaitCondition(visible(DETAILS_PANEL)),
            Locate(name, name="place_name"),
            Assert(located_shows_text("place_name")),
            AwaitCondition(visible(category)),
            Assert(text_not_empty(category)),
            AwaitCondition(visible(address)),
            AwaitCondition(visible(phone)),
            AwaitCondition(visible(email), timeout_s=1.0, severity=OPTIONAL),
            AwaitCondition(visible(hours), timeout_s=1.0, severity=OPTIONAL),
            Assert(attribute_matches(website, "href", r"http"), severity=OPTIONAL),
        ),
    )


def _create_place(exp: NavigatorExpectations) -> Scenario:
    steps: list[Step] = [
        Navigate(),
        AwaitCondition(visible(CREATE_PLACE_LINK)),
        click(CREATE_PLACE_LINK),
    ]
    for selector, value in exp.place_form.items():
        steps.append(fill(target(selector), value))
    steps.append(click(ADD_CATEGORY))
    steps.append(AwaitCondition(visible(CATEGORY_SELECT)))
    steps.append(
        Act(
            ActionKind.SELECT_OPTION,
            CATEGORY_SELECT,
            OptionChoice(index=exp.category_index),
            severity=OPTIONAL,
        )
    )
    for selector, value in exp.place_contact.items():
        steps.append(fill(target(selector), value))
    status = (
        StatusClass.parse(exp.exchange_status) if exp.exchange_status is not None else None
    )
    steps.append(ActAndAwaitExchange(click(SUBMIT), exp.create_place_exchange))
    steps.append(Assert(exchange_ok(status)))
    return Scenario(id="TC020", title="Create Place with Valid Data", steps=tuple(steps))


def _language_switch(exp: NavigatorExpectations) -> Scenario:
    steps: list[Step] = [Navigate()]
    for lang in (exp.english, exp.bosnian):
        steps.extend(
            [
                click(_language_link(lang.code)),
                AwaitCondition(
                    visible(target(f'input[placeholder="{lang.search_placeholder}"]'))
                ),
                AwaitCondition(visible(LEFT_NAV.locate(f"text={lang.create_place}"))),
                AwaitCondition(visible(LEFT_NAV.locate(f"text={lang.feedback}"))),
            ]
        )
    return Scenario(id="TC029", title="Language Selection", steps=tuple(steps))


def _mobile(exp: NavigatorExpectations) -> Scenario:
    return Scenario(
        id="TC031",
        title="Mobile Responsiveness",
        environment=EnvironmentConfig(
            viewport=exp.mobile_viewport, user_agent=exp.mobile_user_agent
        ),
        steps=(
            Navigate(),
            click(MOBILE_MENU),
            AwaitCondition(visible(MAP)),
        ),
    )


def _browser_compatibility() -> Scenario:
    return Scenario(
        id="TC032",
        title="Browser Compatibility",
        steps=(Navigate(), AwaitCondition(visible(MAP))),
    )


def build_scenarios(expectations: NavigatorExpectations | None = None) -> list[Scenario]:
    """Return the full Navigator.ba catalog in id order."""
    exp = expectations or NavigatorExpectations()
    return [
        _homepage(exp),
        _map_display(),
        _map_zoom(),
        _map_drag(exp),
        _locate_me(exp),
        _search(exp),
        _category_filter(),
        _place_details(),
        _create_place(exp),
        _language_switch(exp),
        _mobile(exp),
        _browser_compatibility(),
    ]
