import cv2
import numpy as np
import pytest


class FakeRaw:
    """Body stream handing out at most ``amt`` bytes per read."""

    def __init__(self, content):
        self._content = content
        self._pos = 0

    def read1(self, amt=-1, decode_content=None):
        if amt is None or amt < 0:
            amt = len(self._content)
        chunk = self._content[self._pos:self._pos + amt]
        self._pos += len(chunk)
        return chunk


class FakeResponse:
    def __init__(self, status_code=200, content=b"", reason="OK", headers=None):
        self.status_code = status_code
        self.content = content
        self.reason = reason
        self.headers = headers or {}
        self.raw = FakeRaw(content)
        self.closed = False

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class FakeSession:
    """Stands in for requests.Session; unknown URLs answer 404."""

    def __init__(self):
        self.routes = {}
        self.calls = []
        self.closed = False

    def add(self, url, content=b"", status_code=200, reason="OK"):
        self.routes[url] = (status_code, content, reason)

    def add_error(self, url, exc):
        self.routes[url] = exc

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        route = self.routes.get(url)
        if isinstance(route, Exception):
            raise route
        if route is None:
            return FakeResponse(404, b"", "Not Found")
        status_code, content, reason = route
        return FakeResponse(status_code, content, reason)

    @property
    def urls(self):
        return [url for url, _ in self.calls]

    def close(self):
        self.closed = True


def encode_png(img):
    if img.ndim == 3 and img.shape[2] == 3:
        img = cv2.cvtColor(img, cv2.COLOR_RGB2BGR)
    ok, buf = cv2.imencode(".png", img)
    assert ok
    return buf.tobytes()


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def png_bytes():
    def _make(width, height, color=(200, 100, 50)):
        img = np.zeros((height, width, 3), dtype=np.uint8)
        img[:] = color
        return encode_png(img)
    return _make


@pytest.fixture
def write_config(tmp_path):
    def _write(content, name="book.pse"):
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return str(path)
    return _write
