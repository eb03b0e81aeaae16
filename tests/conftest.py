"""Pytest configuration: fake browsers in place of Playwright."""

import pytest

import olx_scraper
from fakes import FakeBrowser, FakePlaywright, FakeSite


@pytest.fixture
def patch_playwright(monkeypatch):
    """Make ``async_playwright()`` hand out the given fake browser."""

    def _patch(browser, launch_error=None):
        fake = FakePlaywright(browser, launch_error=launch_error)
        monkeypatch.setattr(olx_scraper, "async_playwright", lambda: fake)
        return fake

    return _patch


@pytest.fixture
def make_browser():
    def _make(**site_kwargs):
        return FakeBrowser(FakeSite(**site_kwargs))

    return _make
