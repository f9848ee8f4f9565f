"""
Pytest fixtures for the Style Shuffle dashboard tests.

Provides a small vehicle frame with known class means and a fake HTTP
session so the styling requests never leave the process.
"""

import json

import pandas as pd
import pytest

from ai_styling import StylingConfig


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text

    def json(self):
        if self._payload is None:
            return json.loads(self.text)
        return self._payload


class FakeSession:
    """Records every post() call and answers with a canned response or error."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def sample_df():
    return pd.DataFrame(
        {
            "manufacturer": ["audi", "audi", "honda", "honda", "dodge", "dodge"],
            "model": ["a4", "a4", "civic", "civic", "ram 1500 pickup 4wd", "caravan 2wd"],
            "cyl": [4, 6, 4, 4, 8, 6],
            "trans": ["auto(l5)", "manual(m5)", "manual(m5)", "auto(l4)", "auto(l4)", "auto(l4)"],
            "displ": [1.8, 2.8, 1.6, 1.8, 5.2, 3.8],
            "hwy": [29, 26, 33, 35, 15, 22],
            "class": ["compact", "compact", "subcompact", "subcompact", "pickup", "minivan"],
        }
    )


@pytest.fixture
def config():
    return StylingConfig(api_key="test-key")


@pytest.fixture
def css_response():
    def _make(text="```css\nbody{color:red}\n```", status_code=200):
        return FakeResponse(
            status_code=status_code,
            payload={"content": [{"type": "text", "text": text}]},
        )

    return _make


@pytest.fixture
def make_session():
    return FakeSession


@pytest.fixture
def make_response():
    return FakeResponse
