import os
import sys
import tempfile
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Importing the app creates the key store under the data dir
os.environ.setdefault("IMAGECRAFT_DATA_DIR", tempfile.mkdtemp(prefix="imagecraft-tests-"))


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("IMAGECRAFT_DATA_DIR", str(tmp_path))
    return tmp_path


@pytest.fixture
def png_factory():
    def make(width=64, height=48, color=(200, 120, 40)):
        buf = BytesIO()
        Image.new("RGB", (width, height), color).save(buf, format="PNG")
        return buf.getvalue()

    return make


class FakeResponse:
    def __init__(self, status_code=200, content=b"", payload=None):
        self.status_code = status_code
        self.content = content
        self.text = content.decode("latin-1") if content else ""
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


@pytest.fixture
def fake_response():
    return FakeResponse
