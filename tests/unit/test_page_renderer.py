"""
Unit Tests for Page Renderer
============================

Tests for navigation sequencing, resource capture, failure handling and
output writing, using a Playwright page double.
"""

from pathlib import Path

import pytest

from prerender.core.rendering.page_renderer import (
    ERROR_MESSAGE_LIMIT,
    PageRenderError,
    PageRenderer,
    ResourceCollector,
    truncate_error,
)
from prerender.models.schemas import RenderTask

from tests.utils.mocks import MockPage, MockResponse

BASE = "https://www.example.test"


@pytest.fixture
def renderer(pipeline_config, tmp_path: Path) -> PageRenderer:
    return PageRenderer(pipeline_config, tmp_path / "dist")


@pytest.fixture
def asset_responses():
    return [
        MockResponse(f"{BASE}/assets/index-abc123.js"),
        MockResponse(f"{BASE}/assets/index-abc123.css"),
        MockResponse(f"{BASE}/assets/About-9f8e7d.js"),
        MockResponse(f"{BASE}/assets/About-9f8e7d.css"),
        MockResponse(f"{BASE}/assets/Broken-000000.js", ok=False),
        MockResponse(f"{BASE}/api/data.js"),
        MockResponse(f"{BASE}/assets/logo.svg"),
    ]


class TestResourceCollector:
    """Test response classification."""

    def test_classifies_assets(self, pipeline_config, asset_responses):
        page = MockPage()
        with ResourceCollector(page, pipeline_config) as resources:
            for response in asset_responses:
                page.emit("response", response)

        assert resources.stylesheets == [
            "/assets/index-abc123.css",
            "/assets/About-9f8e7d.css",
        ]
        assert resources.scripts == ["/assets/About-9f8e7d.js"]

    def test_listener_detached_on_exit(self, pipeline_config):
        page = MockPage()
        with ResourceCollector(page, pipeline_config) as resources:
            assert len(page.listeners["response"]) == 1
        assert page.listeners["response"] == []

        page.emit("response", MockResponse(f"{BASE}/assets/late.css"))
        assert resources.stylesheets == []

    def test_listener_detached_on_error(self, pipeline_config):
        page = MockPage()
        with pytest.raises(RuntimeError):
            with ResourceCollector(page, pipeline_config):
                raise RuntimeError("boom")
        assert page.listeners["response"] == []


class TestPageRenderer:
    """Test single-task rendering."""

    def test_build_url(self, renderer):
        task = RenderTask(route="/about", locale="en", theme="dark")
        assert renderer.build_url(task) == (
            f"{BASE}/about?__prerendering=true&locale=en&theme=dark"
        )

    @pytest.mark.asyncio
    async def test_render_success_writes_file(self, renderer, asset_responses, tmp_path):
        page = MockPage(responses=asset_responses)
        task = RenderTask(route="/about", locale="en", theme="dark")

        result = await renderer.render(page, task)

        assert result.success is True
        output = tmp_path / "dist" / "about" / "index.dark.en.html"
        assert result.output_path == str(output.resolve())
        html = output.read_text(encoding="utf-8")
        assert 'rel="modulepreload"' in html
        assert "/assets/About-9f8e7d.js" in html
        assert 'rel="preload"' in html
        assert "/assets/About-9f8e7d.css" in html
        assert html.index("About-9f8e7d.css") < html.index("</head>")
        assert page.listeners["response"] == []

    @pytest.mark.asyncio
    async def test_render_sequence_and_timeouts(self, renderer):
        page = MockPage()
        await renderer.render(page, RenderTask(route="/", locale="tr", theme="light"))

        steps = [call[0] for call in page.calls]
        assert steps == ["goto", "wait_for_function", "wait_for_load_state", "wait_for_timeout"]

        _, _, goto_kwargs = page.calls[0]
        assert goto_kwargs == {"wait_until": "domcontentloaded", "timeout": 30000}

        _, expression, ready_kwargs = page.calls[1]
        assert "querySelector" in expression
        assert ready_kwargs["arg"] == ["#root", 100]
        assert ready_kwargs["timeout"] == 10000

        assert page.calls[2] == ("wait_for_load_state", "networkidle", {"timeout": 10000})
        assert page.calls[3] == ("wait_for_timeout", 0)

    @pytest.mark.asyncio
    async def test_short_document_is_failure(self, renderer, tmp_path):
        page = MockPage(html="<html><head></head><body><div id='root'></div></body></html>")
        task = RenderTask(route="/", locale="tr", theme="light")

        result = await renderer.render(page, task)

        assert result.success is False
        assert "Empty HTML" in result.error
        assert not (tmp_path / "dist" / "index.html").exists()

    @pytest.mark.parametrize("step", ["goto", "wait_for_function", "wait_for_load_state"])
    @pytest.mark.asyncio
    async def test_timeouts_are_task_failures(self, renderer, tmp_path, step):
        page = MockPage(fail_on=step)
        task = RenderTask(route="/about", locale="tr", theme="light")

        result = await renderer.render(page, task)

        assert result.success is False
        assert step in result.error
        assert not (tmp_path / "dist" / "about").exists()
        assert page.listeners["response"] == []

    def test_output_path_stays_under_output_root(self, renderer, tmp_path):
        task = RenderTask(route="/docs/intro", locale="en", theme="light")
        assert renderer.output_path(task) == (
            tmp_path / "dist" / "docs" / "intro" / "index.en.html"
        ).resolve()

    @pytest.mark.parametrize("route", ["//evil", "/../../outside", "/a/../../escape"])
    def test_output_path_rejects_escaping_routes(self, renderer, route):
        task = RenderTask(route=route, locale="tr", theme="light")
        with pytest.raises(PageRenderError, match="escapes"):
            renderer.output_path(task)

    @pytest.mark.asyncio
    async def test_escaping_route_is_task_failure(self, renderer, tmp_path):
        page = MockPage()
        task = RenderTask(route="/../../outside", locale="tr", theme="light")

        result = await renderer.render(page, task)

        assert result.success is False
        assert "escapes" in result.error
        assert not (tmp_path / "outside").exists()
        assert not (tmp_path.parent / "outside").exists()

    @pytest.mark.asyncio
    async def test_render_without_assets_leaves_head_untouched(self, renderer, tmp_path):
        page = MockPage()
        result = await renderer.render(page, RenderTask(route="/", locale="tr", theme="light"))

        assert result.success is True
        html = (tmp_path / "dist" / "index.html").read_text(encoding="utf-8")
        assert "preload" not in html


def test_truncate_error():
    error = RuntimeError("x" * 500)
    assert len(truncate_error(error)) == ERROR_MESSAGE_LIMIT
