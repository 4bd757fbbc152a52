from dom_builder import DomBuilder, node_by_id

from job_copilot.agent.labels import find_label, humanize_identifier, resolve_label


def label_of(builder: DomBuilder, element_id: str) -> str:
    snapshot = builder.snapshot()
    return find_label(snapshot, node_by_id(snapshot, element_id))


def test_explicit_label_beats_placeholder():
    b = DomBuilder()
    form = b.el("form")
    b.el("label", form, text="First Name", for_="fname")
    b.el("input", form, id="fname", type="text", placeholder="e.g. Jane")

    snapshot = b.snapshot()
    label, source = resolve_label(snapshot, node_by_id(snapshot, "fname"))
    assert label == "First Name"
    assert source == "label_for"


def test_placeholder_used_without_label():
    b = DomBuilder()
    b.el("input", id="city", placeholder="  City  ")
    assert label_of(b, "city") == "City"


def test_label_for_falls_back_to_top_document_from_shadow_scope():
    b = DomBuilder()
    b.el("label", text="Email", for_="mail")
    host = b.el("custom-field")
    root = b.shadow_root(host)
    b.el("input", root, id="mail", type="email")
    assert label_of(b, "mail") == "Email"


def test_aria_labelledby_concatenates_targets():
    b = DomBuilder()
    b.el("span", id="part1", text="Desired")
    b.el("span", id="part2", text="Salary")
    b.el("input", id="salary", aria_labelledby="part1 part2")
    assert label_of(b, "salary") == "Desired Salary"


def test_aria_label_wins_over_labelledby():
    b = DomBuilder()
    b.el("span", id="other", text="Ignored")
    b.el("input", id="x", aria_label="Phone", aria_labelledby="other")
    assert label_of(b, "x") == "Phone"


def test_select_first_option_used_unless_it_is_an_instruction():
    b = DomBuilder()
    select = b.el("select", id="degree")
    b.option(select, "Highest degree", value="")
    b.option(select, "BS", value="bs")

    instructed = b.el("select", id="country")
    b.option(instructed, "Select a country", value="")
    b.option(instructed, "Canada", value="ca")

    assert label_of(b, "degree") == "Highest degree"
    assert label_of(b, "country") == "Unknown"


def test_automation_id_is_humanized():
    b = DomBuilder()
    b.el("input", id="a1", data_automation_id="legalNameSection_firstName")
    assert label_of(b, "a1") == "legal Name Section first Name"
    assert humanize_identifier("addressSection-city") == "address Section city"


def test_data_label_attribute():
    b = DomBuilder()
    b.el("input", id="d1", data_field_name="Postal Code")
    assert label_of(b, "d1") == "Postal Code"


def test_previous_sibling_within_two_steps():
    b = DomBuilder()
    group = b.el("div")
    b.el("span", group, text="Last Name")
    b.el("i", group)
    b.el("input", group, id="lname")
    assert label_of(b, "lname") == "Last Name"


def test_sibling_text_with_line_break_is_rejected():
    b = DomBuilder()
    group = b.el("section")
    b.el("p", group, text="Tell us\nabout yourself")
    b.el("input", group, id="bio")
    # falls through to the ancestor strategy, which also rejects the line break
    assert label_of(b, "bio") == "Unknown"


def test_ancestor_label_descendant():
    b = DomBuilder()
    outer = b.el("div")
    b.el("div", outer, text="Country of residence", class_="field-label")
    wrapper = b.el("div", outer)
    b.el("input", wrapper, id="res")
    assert label_of(b, "res") == "Country of residence"


def test_ancestor_text_excludes_controls():
    b = DomBuilder()
    outer = b.el("div")
    b.text(outer, "Zip code")
    b.el("button", outer, text="Clear")
    b.el("input", outer, id="zip")
    assert label_of(b, "zip") == "Zip code"


def test_ancestor_boilerplate_is_rejected():
    b = DomBuilder()
    outer = b.el("div")
    b.text(outer, "Optional")
    b.el("input", outer, id="nick")
    assert label_of(b, "nick") == "Unknown"


def test_button_uses_own_text_truncated():
    b = DomBuilder()
    long_text = "Upload   your   resume " + "x" * 60
    b.el("button", id="btn", text=long_text)
    label = label_of(b, "btn")
    assert label.startswith("Upload your resume")
    assert len(label) == 50


def test_overlong_candidates_are_skipped():
    b = DomBuilder()
    b.el("input", id="long", aria_label="x" * 150, placeholder="Short")
    assert label_of(b, "long") == "Short"


def test_upload_fallbacks():
    b = DomBuilder()
    b.el("input", id="cv", type="file", name="resume_file-upload")
    b.el("input", id="anon", type="file")
    assert label_of(b, "cv") == "resume file upload"
    assert label_of(b, "anon") == "File Upload"


def test_unknown_when_nothing_matches():
    b = DomBuilder()
    b.el("input", id="bare")
    snapshot = b.snapshot()
    assert resolve_label(snapshot, node_by_id(snapshot, "bare")) == ("Unknown", "fallback")
