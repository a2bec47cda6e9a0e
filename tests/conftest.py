"""Shared pytest fixtures."""
import pytest

from tests.fakes import page, write_site


@pytest.fixture
def clean_site(tmp_path):
    """Static site where every link resolves."""
    return write_site(tmp_path / "clean", {
        "index.html": page("page2.html", "page3.html", "#abc", "mailto:someone@example.com", "tel:+123"),
        "page2.html": page("index.html", "page3.html"),
        "page3.html": page("/"),
    })


@pytest.fixture
def broken_site(tmp_path):
    """Static site with one missing page."""
    return write_site(tmp_path / "broken", {
        "index.html": page("page2.html", "missing.html"),
        "page2.html": page("index.html"),
    })
