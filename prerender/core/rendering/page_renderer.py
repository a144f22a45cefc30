"""
Page Renderer
=============

Render one (route, locale, theme) task in a Playwright page and persist the
hydrated HTML with preload hints for the assets the page pulled in.
"""

from typing import Any
from pathlib import Path
from urllib.parse import urlencode

from playwright.async_api import Page, Response

from prerender.config.logging import get_logger
from prerender.core.rendering.html_processing import format_html, inject_preload_hints
from prerender.models.schemas import (
    PipelineConfig,
    RenderResult,
    RenderTask,
    ResourceSet,
    output_path_for,
)

logger = get_logger(__name__)

ERROR_MESSAGE_LIMIT = 150


class PageRenderError(Exception):
    """Exception raised when a captured page is unusable."""

    pass


class ResourceCollector:
    """
    Response listener recording stylesheet and script chunk paths.

    Use as a context manager around a single render so the listener is
    removed from the page before the page is reused or closed.
    """

    def __init__(self, page: Page, config: PipelineConfig):
        self.page = page
        self.config = config
        self.resources = ResourceSet()
        self._listener = self.on_response

    def __enter__(self) -> ResourceSet:
        self.page.on("response", self._listener)
        return self.resources

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.page.remove_listener("response", self._listener)

    def on_response(self, response: Response) -> None:
        url = response.url
        if not response.ok or self.config.assets_marker not in url:
            return

        relative_path = url.replace(self.config.production_url, "")
        path = relative_path.split("?", 1)[0]

        if path.endswith(".css"):
            self.resources.add_stylesheet(relative_path)
        # Entry chunk is already referenced by the document itself
        elif path.endswith(".js") and self.config.entry_chunk_marker not in relative_path:
            self.resources.add_script(relative_path)


class PageRenderer:
    """Drive one browser page through navigation, readiness and capture."""

    def __init__(self, config: PipelineConfig, output_dir: Path):
        self.config = config
        self.output_dir = output_dir
        self.logger: Any = logger.bind(component="page_renderer")  # structlog.BoundLoggerBase

    def build_url(self, task: RenderTask) -> str:
        """Compose the pre-render URL for a task."""
        query = urlencode(
            {"__prerendering": "true", "locale": task.locale, "theme": task.theme}
        )
        return f"{self.config.production_url}{task.route}?{query}"

    def output_path(self, task: RenderTask) -> Path:
        """
        Resolve the output file for a task under the output root.

        Raises:
            PageRenderError: If the route resolves outside the output root
        """
        root = self.output_dir.resolve()
        path = (root / output_path_for(task, self.config)).resolve()
        if not path.is_relative_to(root):
            raise PageRenderError(f"Output path for {task.route} escapes {root}")
        return path

    async def render(self, page: Page, task: RenderTask) -> RenderResult:
        """
        Render a task and write its HTML file.

        Args:
            page: Fresh browser page owned by this task
            task: Route, locale and theme to render

        Returns:
            RenderResult; failures are reported, never raised
        """
        self.logger.info("Rendering", route=task.route, locale=task.locale, theme=task.theme)

        try:
            with ResourceCollector(page, self.config) as resources:
                html = await self._capture(page, task)

            html = inject_preload_hints(html, resources)
            if len(resources):
                self.logger.info(
                    "Preload hints injected",
                    route=task.route,
                    css=len(resources.stylesheets),
                    js=len(resources.scripts),
                )

            output_path = self.output_path(task)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(format_html(html), encoding="utf-8")

        except Exception as e:
            message = truncate_error(e)
            self.logger.error("Render failed", task=str(task), error=message)
            return RenderResult(task=task, success=False, error=message)

        self.logger.info("Success", task=str(task), output=str(output_path))
        return RenderResult(task=task, success=True, output_path=str(output_path))

    async def _capture(self, page: Page, task: RenderTask) -> str:
        """Navigate, wait for the application to settle and return the DOM."""
        config = self.config

        await page.goto(
            self.build_url(task),
            wait_until="domcontentloaded",
            timeout=config.page_load_timeout * 1000,
        )

        # Root content length stands in for a hydration-complete signal
        await page.wait_for_function(
            "([selector, minLength]) => "
            "(document.querySelector(selector)?.innerHTML?.length ?? 0) > minLength",
            arg=[config.root_selector, config.ready_min_length],
            timeout=config.wait_for_ready_timeout * 1000,
        )

        await page.wait_for_load_state("networkidle", timeout=config.network_idle_timeout * 1000)

        # Lazy work scheduled after network idle is invisible to the detector
        await page.wait_for_timeout(config.additional_wait * 1000)

        html = await page.content()
        if len(html) < config.min_html_length:
            raise PageRenderError(f"Empty HTML for {task.route} ({len(html)} bytes)")
        return html


def truncate_error(error: BaseException) -> str:
    """Shorten an exception message for single-line log output."""
    return str(error)[:ERROR_MESSAGE_LIMIT]
