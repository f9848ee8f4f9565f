"""
Smoke tests for the Streamlit script, driven through AppTest.
"""

import time

import pytest
import requests

from ai_styling import STATUS_APPLIED, STATUS_MISSING_KEY
from core import FilterState, df_raw, filter_data

pytest.importorskip("streamlit.testing.v1")

from streamlit.testing.v1 import AppTest  # noqa: E402


def apply_styling(at, prompt, attempts=50):
    """Click "Apply AI Styling" and rerun until the worker has finished."""
    at.text_area(key="prompt").input(prompt)
    at.button(key="apply_styling").click().run()
    for _ in range(attempts):
        if "styling_future" not in at.session_state:
            break
        time.sleep(0.1)
        at.run()
    at.run()
    return at


def ai_style_blocks(at):
    return [m.value for m in at.markdown if 'id="ai-styles"' in m.value]


@pytest.fixture
def at(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    app = AppTest.from_file("../app.py", default_timeout=30)
    app.run()
    return app


class TestLayout:
    def test_runs_cleanly(self, at):
        assert not at.exception
        assert at.title[0].value == "Style Shuffle"

    def test_three_filters_default_to_all(self, at):
        for key in ["filter_manufacturer", "filter_cylinders", "filter_transmission"]:
            assert at.selectbox(key=key).value == "All"

    def test_filter_options_come_from_dataset(self, at):
        options = at.selectbox(key="filter_manufacturer").options
        assert options[0] == "All"
        assert set(options[1:]) == set(df_raw["manufacturer"].unique())

    def test_table_shows_first_page(self, at):
        assert len(at.dataframe[0].value) == 10
        assert at.caption[0].value.startswith(f"Showing 1 to 10 of {len(df_raw)} entries")

    def test_no_status_before_styling(self, at):
        # only the "Applied CSS" block is present
        assert len(at.code) == 1
        assert at.code[0].value == ""


class TestFiltering:
    def test_manufacturer_filter_updates_table(self, at):
        at.selectbox(key="filter_manufacturer").set_value("honda").run()
        expected = len(filter_data(df_raw, FilterState(manufacturer="honda")))
        assert not at.exception
        assert at.caption[0].value.startswith(f"Showing 1 to {expected} of {expected} entries")

    def test_empty_selection_renders(self, at):
        at.selectbox(key="filter_manufacturer").set_value("honda")
        at.selectbox(key="filter_cylinders").set_value("8").run()
        assert not at.exception
        assert len(at.dataframe[0].value) == 0
        assert at.caption[0].value.startswith("Showing 0 to 0 of 0 entries")
        assert at.info[0].value == "No data for the current filter selection."

    def test_reset_filters(self, at):
        at.selectbox(key="filter_manufacturer").set_value("audi").run()
        at.button(key="reset_filters").click().run()
        assert at.selectbox(key="filter_manufacturer").value == "All"


class TestStylingTrigger:
    def test_blank_prompt_does_nothing(self, at):
        at.text_area(key="prompt").input("   ")
        at.button(key="apply_styling").click().run()
        assert not at.exception
        assert len(at.code) == 1
        assert "styling_future" not in at.session_state

    def test_missing_key_status(self, at, monkeypatch):
        calls = []
        monkeypatch.setattr(requests, "post", lambda *a, **kw: calls.append(a))
        apply_styling(at, "neon")
        assert not at.exception
        assert at.code[0].value == STATUS_MISSING_KEY
        assert at.code[1].value == ""
        assert calls == []

    def test_success_updates_page(self, at, monkeypatch, make_session, css_response):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
        session = make_session(response=css_response("```css\nh1{color:magenta}\n```"))
        monkeypatch.setattr(requests, "post", session.post)

        apply_styling(at, "neon")

        assert not at.exception
        assert len(session.calls) == 1
        assert session.calls[0]["headers"]["x-api-key"] == "test-key"
        assert at.code[0].value == STATUS_APPLIED
        assert at.code[1].value.strip() == "h1{color:magenta}"
        blocks = ai_style_blocks(at)
        assert len(blocks) == 1
        assert "h1{color:magenta}" in blocks[0]
        assert "```" not in blocks[0]

    def test_http_error_keeps_previous_css(self, at, monkeypatch, make_session, css_response, make_response):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
        session = make_session(response=css_response("h1{color:lime}"))
        monkeypatch.setattr(requests, "post", session.post)
        apply_styling(at, "neon")

        session.response = make_response(status_code=500, text="upstream exploded")
        apply_styling(at, "retro")

        assert not at.exception
        assert at.code[0].value == "API Error: upstream exploded"
        assert at.code[1].value.strip() == "h1{color:lime}"
        assert "h1{color:lime}" in ai_style_blocks(at)[0]
