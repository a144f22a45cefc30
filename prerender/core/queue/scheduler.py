"""
Render Task Scheduler
=====================

Expand routes x locales x themes into render tasks and execute them with a
bounded number of browser pages in flight.
"""

from typing import Any, List
import asyncio

from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright

from prerender.config.logging import get_logger
from prerender.core.rendering.page_renderer import PageRenderer, truncate_error
from prerender.models.schemas import PipelineConfig, RenderResult, RenderTask

logger = get_logger(__name__)


def build_tasks(config: PipelineConfig) -> List[RenderTask]:
    """Build the task set in route-major, then locale, then theme order."""
    return [
        RenderTask(route=route, locale=locale, theme=theme)
        for route in config.routes
        for locale in config.locales
        for theme in config.themes
    ]


class RenderScheduler:
    """Run every render task under a counting admission gate."""

    def __init__(self, config: PipelineConfig, renderer: PageRenderer):
        self.config = config
        self.renderer = renderer
        self.results: List[RenderResult] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._semaphore = asyncio.Semaphore(config.concurrency)
        self.logger: Any = logger.bind(component="render_scheduler")  # structlog.BoundLoggerBase

    async def launch_browser(self, playwright: Playwright) -> Browser:
        """Launch Chromium with the production domain mapped to the preview port."""
        config = self.config
        self.logger.info(
            "DNS override",
            domain=config.production_domain,
            target=f"localhost:{config.preview_port}",
        )
        return await playwright.chromium.launch(
            headless=config.playwright.headless,
            args=[
                f"--host-resolver-rules=MAP {config.production_domain}:443 "
                f"localhost:{config.preview_port}",
                "--ignore-certificate-errors",
            ],
        )

    async def render_all(self) -> int:
        """
        Launch a browser and render the full task set.

        Returns:
            Number of successful tasks
        """
        async with async_playwright() as playwright:
            browser = await self.launch_browser(playwright)
            try:
                context = await browser.new_context(ignore_https_errors=True)
                return await self.run(context)
            finally:
                await browser.close()

    async def run(self, context: BrowserContext) -> int:
        """
        Execute all tasks against a browser context.

        Args:
            context: Browser context pages are opened from

        Returns:
            Number of successful tasks; failures are counted, never raised
        """
        tasks = build_tasks(self.config)
        self.logger.info(
            "Rendering with concurrency",
            concurrency=self.config.concurrency,
            tasks=len(tasks),
        )

        self.results = list(
            await asyncio.gather(*(self._run_task(context, task) for task in tasks))
        )
        return sum(1 for result in self.results if result.success)

    async def _run_task(self, context: BrowserContext, task: RenderTask) -> RenderResult:
        async with self._semaphore:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            try:
                page = await context.new_page()
                try:
                    return await self.renderer.render(page, task)
                finally:
                    await self._close_page(page, task)
            except Exception as e:
                message = truncate_error(e)
                self.logger.error("Task failed", task=str(task), error=message)
                return RenderResult(task=task, success=False, error=message)
            finally:
                self.in_flight -= 1

    async def _close_page(self, page: Any, task: RenderTask) -> None:
        try:
            await page.close()
        except Exception as e:
            self.logger.warning("Page close failed", task=str(task), error=truncate_error(e))
