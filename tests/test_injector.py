import asyncio

import pytest

from dom_builder import DomBuilder, node_by_id

from job_copilot.agent.document import InMemoryDriver
from job_copilot.agent.injector import Injector, is_affirmative, match_option_index
from job_copilot.agent.scanner import scan_page_fields
from job_copilot.agent.values import extract_value


def observed(builder: DomBuilder):
    driver = InMemoryDriver(builder.snapshot())
    snapshot = asyncio.run(driver.observe())
    return driver, snapshot


def events_for(driver: InMemoryDriver, index: int):
    return [event for node, event in driver.events if node == index]


def test_text_fill_round_trip_and_events():
    b = DomBuilder()
    b.el("label", text="First Name", for_="first")
    b.el("input", id="first")
    driver, snapshot = observed(b)
    node = node_by_id(snapshot, "first")

    assert asyncio.run(Injector(driver).fill(snapshot.ref(node), "Jane")) is True
    assert extract_value(snapshot, node) == "Jane"
    assert events_for(driver, node.index) == ["input", "change", "blur"]

    fields = scan_page_fields(asyncio.run(driver.observe()))
    assert fields[0].value == "Jane"


def test_contenteditable_fill():
    b = DomBuilder()
    b.el("div", contenteditable="true", id="ce")
    driver, snapshot = observed(b)
    node = node_by_id(snapshot, "ce")

    assert asyncio.run(Injector(driver).fill(snapshot.ref(node), "Hello")) is True
    assert extract_value(snapshot, node) == "Hello"
    assert events_for(driver, node.index) == ["input", "change", "blur"]


def build_select(*options):
    b = DomBuilder()
    select = b.el("select", id="s")
    for text, value in options:
        b.option(select, text, value=value)
    return b


def test_select_prefers_exact_match_over_substring():
    b = build_select(("Select", ""), ("United States Minor Outlying Islands", "UM"), ("United States", "US"))
    driver, snapshot = observed(b)
    node = node_by_id(snapshot, "s")

    assert asyncio.run(Injector(driver).fill(snapshot.ref(node), "united states")) is True
    assert snapshot.selected_index(node) == 2
    assert extract_value(snapshot, node) == "United States"
    assert events_for(driver, node.index) == ["input", "change"]


def test_select_substring_and_no_match():
    b = build_select(("", ""), ("Master of Science", "ms"))
    driver, snapshot = observed(b)
    node = node_by_id(snapshot, "s")

    assert match_option_index(snapshot, node, "Master") == 1
    assert match_option_index(snapshot, node, "") is None
    assert asyncio.run(Injector(driver).fill(snapshot.ref(node), "PhD")) is False


@pytest.mark.parametrize(
    "value,expected", [("Yes", True), ("true", True), ("checked", True), ("1", True), ("No", False), ("0", False)]
)
def test_is_affirmative(value, expected):
    assert is_affirmative(value) is expected


def test_checkbox_toggles_only_when_different():
    b = DomBuilder()
    b.el("input", type="checkbox", id="c")
    driver, snapshot = observed(b)
    node = node_by_id(snapshot, "c")
    injector = Injector(driver)

    assert asyncio.run(injector.fill(snapshot.ref(node), "Yes")) is True
    assert extract_value(snapshot, node) == "checked"
    assert events_for(driver, node.index) == ["change", "click"]

    assert asyncio.run(injector.fill(snapshot.ref(node), "Yes")) is True
    assert events_for(driver, node.index) == ["change", "click"]


def test_radio_matches_on_value_attribute():
    b = DomBuilder()
    b.el("input", type="radio", name="auth", value="Yes", id="yes")
    b.el("input", type="radio", name="auth", value="No", id="no")
    b.el("input", type="radio", name="other", id="default-on")
    driver, snapshot = observed(b)
    injector = Injector(driver)
    yes, no = node_by_id(snapshot, "yes"), node_by_id(snapshot, "no")

    assert asyncio.run(injector.fill(snapshot.ref(no), "Yes")) is False
    assert asyncio.run(injector.fill(snapshot.ref(yes), "Yes")) is True
    assert extract_value(snapshot, yes) == "checked"
    assert extract_value(snapshot, no) == "unchecked"
    assert asyncio.run(injector.fill(snapshot.ref(node_by_id(snapshot, "default-on")), "on")) is False


def test_disabled_controls_are_refused():
    b = DomBuilder()
    b.el("input", id="off", disabled="")
    b.el("button", id="btn", aria_disabled="true", text="Next")
    driver, snapshot = observed(b)
    injector = Injector(driver)

    assert asyncio.run(injector.fill(snapshot.ref(node_by_id(snapshot, "off")), "x")) is False
    assert asyncio.run(injector.click(snapshot.ref(node_by_id(snapshot, "btn")))) is False
    assert driver.clicks == []


def test_click_scrolls_waits_and_activates():
    b = DomBuilder()
    b.el("button", id="btn", text="Next")
    driver, snapshot = observed(b)
    node = node_by_id(snapshot, "btn")

    assert asyncio.run(Injector(driver, click_settle_ms=500).click(snapshot.ref(node))) is True
    assert driver.waits == [500]
    assert driver.clicks == [node.index]


def test_stale_refs_are_reported_as_failure():
    b = DomBuilder()
    b.el("input", id="first")
    driver, snapshot = observed(b)
    stale_ref = snapshot.ref(node_by_id(snapshot, "first"))
    asyncio.run(driver.observe())
    injector = Injector(driver)

    assert asyncio.run(injector.fill(stale_ref, "Jane")) is False
    assert asyncio.run(injector.click(stale_ref)) is False
    assert driver.events == []
