import os
import sys
import tempfile
from pathlib import Path

import pytest

os.environ.setdefault("B24_CLIENT_ID", "local.test-client")
os.environ.setdefault("B24_CLIENT_SECRET", "test-secret")
os.environ.setdefault("B24_TOKEN_BACKEND", "memory")
os.environ.setdefault("B24_LOG_TO_CONSOLE", "false")
os.environ.setdefault("B24_LOG_PATH", str(Path(tempfile.gettempdir()) / "b24_bridge_tests" / "b24_bridge.log"))


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


_INVALID_JSON = object()


class DummyResponse:
    """Just enough of :class:`requests.Response` for the clients under test."""

    def __init__(self, status_code: int = 200, json_data=None, reason: str = "OK"):
        self.status_code = status_code
        self._json_data = json_data
        self.reason = reason

    def json(self):
        if self._json_data is _INVALID_JSON:
            raise ValueError("No JSON object could be decoded")
        return self._json_data


class RecordingHttp:
    """Replays scripted responses (or raises scripted exceptions) for ``post``."""

    def __init__(self, *responses):
        self._responses = list(responses)
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if not self._responses:
            raise AssertionError(f"Unexpected extra request to {url}")
        item = self._responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


@pytest.fixture
def response():
    def _build(status_code: int = 200, json_data=None, *, invalid_json: bool = False):
        return DummyResponse(status_code, _INVALID_JSON if invalid_json else json_data)

    return _build


@pytest.fixture
def http():
    return RecordingHttp
