import io
import json

import pytest
from rich.console import Console

ORIGIN = "https://example.test"


class FakeFetcher:
    """Serves canned bodies by URL; anything unknown behaves like a 404."""

    def __init__(self, responses):
        self.responses = responses
        self.requested = []

    def get(self, url):
        self.requested.append(url)
        return self.responses.get(url)


def regular_map(sources, contents, mappings="AAAA"):
    return json.dumps({
        "version": 3,
        "sources": sources,
        "sourcesContent": contents,
        "names": [],
        "mappings": mappings,
    })


def page(*srcs):
    scripts = "".join(f'<script src="{src}"></script>' for src in srcs)
    return f"<html><head>{scripts}</head><body></body></html>"


@pytest.fixture
def console_buffer():
    return io.StringIO()


@pytest.fixture
def console(console_buffer):
    return Console(file=console_buffer, force_terminal=False, no_color=True, width=200)


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path
