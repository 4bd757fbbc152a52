import logging

from dom_builder import DomBuilder

from job_copilot.agent.traversal import collect_clickables, collect_controls, iter_scopes


def build_nested_page() -> DomBuilder:
    b = DomBuilder()
    form = b.el("form")
    b.el("input", form, id="top")

    host = b.el("x-widget", form)
    shadow = b.shadow_root(host)
    b.el("input", shadow, id="in-shadow")
    inner_host = b.el("x-inner", shadow)
    inner_shadow = b.shadow_root(inner_host)
    b.el("textarea", inner_shadow, id="deep")

    frame = b.el("iframe", form)
    frame_doc = b.frame_document(frame)
    html = b.el("html", frame_doc)
    b.el("select", html, id="in-frame")

    blocked = b.el("iframe", form)
    b.blocked_frame(blocked)
    return b


def ids(nodes):
    return [node.element_id for node in nodes]


def test_controls_found_in_every_reachable_scope():
    snapshot = build_nested_page().snapshot()
    assert sorted(ids(collect_controls(snapshot))) == ["deep", "in-frame", "in-shadow", "top"]


def test_each_scope_visited_once():
    snapshot = build_nested_page().snapshot()
    scopes = list(iter_scopes(snapshot))
    assert len(scopes) == len({scope.index for scope in scopes}) == 4


def test_blocked_frame_is_logged_and_skipped(caplog):
    snapshot = build_nested_page().snapshot()
    with caplog.at_level(logging.DEBUG):
        controls = collect_controls(snapshot)
    assert len(controls) == 4
    assert any("traversal_subtree_skipped" in record.getMessage() for record in caplog.records)


def test_button_like_inputs_are_not_candidates():
    b = DomBuilder()
    for kind in ("submit", "reset", "button", "image"):
        b.el("input", type=kind, id=kind)
    b.el("input", type="hidden", id="hidden")
    assert ids(collect_controls(b.snapshot())) == ["hidden"]


def test_contenteditable_markers():
    b = DomBuilder()
    b.el("div", contenteditable="", id="empty")
    b.el("div", contenteditable="plaintext-only", id="plain")
    b.el("div", contenteditable="false", id="off")
    assert ids(collect_controls(b.snapshot())) == ["empty", "plain"]


def test_attention_clickables_follow_controls_without_duplicates():
    b = DomBuilder()
    b.el("button", text="Upload resume", id="upload")
    b.el("button", text="Save", id="save")
    b.el("a", role="button", text="Add education", id="add-edu")
    b.el("button", type="submit", text="Add and submit", id="submit")
    b.el("input", id="name")
    b.el("div", role="checkbox", onclick="toggle()", id="agree")

    found = ids(collect_controls(b.snapshot()))
    assert found == ["name", "agree", "upload", "add-edu"]


def test_clickables_include_submit_inputs():
    b = DomBuilder()
    b.el("button", text="Next", id="next")
    b.el("input", type="submit", id="go")
    b.el("span", text="plain", id="plain")
    assert ids(collect_clickables(b.snapshot())) == ["next", "go"]
