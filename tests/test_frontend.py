"""Tests for the frontend module."""

from __future__ import annotations

from vexnotes.web.frontend import _load_template, router


class TestLoadTemplate:
    """Tests for _load_template function."""

    def test_load_template_contains_html(self) -> None:
        result = _load_template()
        assert "<!doctype" in result.lower() or "<html" in result.lower()
        assert "</html>" in result.lower()

    def test_load_template_contains_branding(self) -> None:
        assert "VexNotes" in _load_template()

    def test_template_calls_api(self) -> None:
        """The page talks to the query and sync endpoints."""
        template = _load_template()
        assert "/query" in template
        assert "/sync" in template


class TestRouter:
    """Tests for the frontend router."""

    def test_router_has_index_route(self) -> None:
        assert "/" in [route.path for route in router.routes]
