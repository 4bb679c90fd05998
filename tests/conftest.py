"""Shared fixtures for the imagebed test-suite.

Every test gets its own settings pointing the gallery, cache and
rate-limit files into ``tmp_path`` so nothing leaks between tests or
into the working directory. Images are generated in memory with Pillow
and the remote image host is replaced by an ``httpx.MockTransport``.
"""

import io
import json
import random

import httpx
import pytest
from PIL import Image

from imagebed.config import Settings


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_image(fmt="PNG", size=(32, 32), mode="RGB", noise=False, seed=0, **save_kwargs) -> bytes:
    """Encode a solid-colour or random-noise image into ``fmt``."""
    if noise:
        channels = len(mode)
        rng = random.Random(seed)
        img = Image.frombytes(mode, size, rng.randbytes(size[0] * size[1] * channels))
    else:
        color = (200, 30, 30, 128)[: len(mode)] if mode != "L" else 128
        img = Image.new(mode, size, color)
    buf = io.BytesIO()
    img.save(buf, format=fmt, **save_kwargs)
    return buf.getvalue()


class RemoteHost:
    """Records uploads and answers like the real image host."""

    def __init__(self):
        self.requests = []
        self.status_code = 200
        self.body = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.body is not None:
            return httpx.Response(self.status_code, content=self.body)
        n = len(self.requests)
        payload = {
            "success": True,
            "object": {
                "url": f"https://img.example.com/{n}.jpg",
                "fileName": f"remote_{n}",
                "size": 2048,
                "pix": "32x32",
                "fileId": f"fid-{n}",
                "quality": 90,
            },
        }
        return httpx.Response(self.status_code, content=json.dumps(payload))


@pytest.fixture
def settings(tmp_path):
    return Settings(
        gallery_file=tmp_path / "gallery.json",
        cache_dir=tmp_path / "cache",
        rate_limit_dir=tmp_path / "rate",
        enable_cache=True,
        enable_logging=False,
        log_file=None,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def remote():
    return RemoteHost()


@pytest.fixture
def transport(remote):
    return httpx.MockTransport(remote)
