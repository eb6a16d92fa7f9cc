import pytest

from splashparser.container import PAGE_SIZE, SplashHeader, build_header, pages_for


@pytest.fixture
def make_block():
    """Header page + payload padded to its page reservation."""
    def _make(width, height, mode, payload=b"", pages=None):
        if pages is None:
            pages = pages_for(len(payload))
        header = build_header(SplashHeader(width, height, mode, pages))
        return header + payload.ljust(pages * PAGE_SIZE, b"\x00")
    return _make
