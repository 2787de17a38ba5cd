"""Shared fixtures: a fake Anthropic reply and a Flask test client."""

from unittest.mock import MagicMock, patch

import pytest

from server import create_app


def make_upstream_response(text=None, status_code=200, body="", content=None):
    """Build a stand-in for the requests.Response returned by the Messages API."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 300
    resp.text = body
    if content is None:
        content = [{"type": "text", "text": text}] if text is not None else []
    resp.json.return_value = {
        "id": "msg_test",
        "type": "message",
        "role": "assistant",
        "content": content,
    }
    return resp


@pytest.fixture
def mock_post():
    with patch("search_proxy.requests.post") as post:
        yield post


@pytest.fixture
def app():
    return create_app(api_key="sk-ant-test-key", static_dir="", validate=False)


@pytest.fixture
def client(app):
    return app.test_client()
