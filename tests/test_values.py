from dom_builder import DomBuilder, node_by_id

from job_copilot.agent.values import extract_value


def value_of(builder: DomBuilder, element_id: str) -> str:
    snapshot = builder.snapshot()
    return extract_value(snapshot, node_by_id(snapshot, element_id))


def test_select_reports_selected_option_text():
    b = DomBuilder()
    select = b.el("select", id="s")
    b.option(select, "Choose one", value="")
    b.option(select, "United States", value="US", selected=True)
    assert value_of(b, "s") == "United States"


def test_select_without_options_falls_back_to_value():
    b = DomBuilder()
    b.el("select", id="s", props={"value": "raw"})
    assert value_of(b, "s") == "raw"


def test_select_with_blank_option_text_falls_back_to_value():
    b = DomBuilder()
    select = b.el("select", id="s", props={"value": "opt-7"})
    b.option(select, "", value="opt-7", selected=True)
    assert value_of(b, "s") == "opt-7"


def test_text_inputs_prefer_live_property():
    b = DomBuilder()
    b.el("input", id="typed", value="from attribute", props={"value": "live"})
    b.el("input", id="attr", value="from attribute")
    b.el("input", id="empty")
    assert value_of(b, "typed") == "live"
    assert value_of(b, "attr") == "from attribute"
    assert value_of(b, "empty") == ""


def test_checkable_states():
    b = DomBuilder()
    b.el("input", type="checkbox", id="on", props={"checked": True})
    b.el("input", type="radio", id="off")
    b.el("div", role="checkbox", aria_checked="true", id="aria")
    assert value_of(b, "on") == "checked"
    assert value_of(b, "off") == "unchecked"
    assert value_of(b, "aria") == "checked"


def test_file_inputs():
    b = DomBuilder()
    b.el("input", type="file", id="none")
    b.el("input", type="file", id="two", props={"files": ["cv.pdf", "letter.pdf"]})
    assert value_of(b, "none") == "no file selected"
    assert value_of(b, "two") == "cv.pdf, letter.pdf"


def test_textarea_and_contenteditable():
    b = DomBuilder()
    b.el("textarea", id="t", text="initial")
    b.el("textarea", id="typed", text="initial", props={"value": "edited"})
    b.el("div", contenteditable="true", id="ce", text="rich text")
    assert value_of(b, "t") == "initial"
    assert value_of(b, "typed") == "edited"
    assert value_of(b, "ce") == "rich text"


def test_clickables_report_trimmed_text():
    b = DomBuilder()
    b.el("button", id="b", text="  Upload resume  ")
    assert value_of(b, "b") == "Upload resume"
