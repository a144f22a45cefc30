"""
Pipeline Orchestrator
=====================

Sequence configuration loading, preview server lifecycle, artifact
generation and rendering, guaranteeing the server is stopped on every path
once it has started.
"""

from typing import Any, Callable, Optional
from pathlib import Path

from prerender.config.loader import ConfigurationError, load_pipeline_config
from prerender.config.logging import get_logger
from prerender.config.settings import Settings
from prerender.core.artifacts.site_artifacts import SiteArtifactGenerator
from prerender.core.queue.scheduler import RenderScheduler
from prerender.core.rendering.page_renderer import PageRenderer
from prerender.core.server.supervisor import PreviewServerSupervisor, ServerStartError
from prerender.models.schemas import PipelineConfig, PipelineResult, PipelineState

logger = get_logger(__name__)

SupervisorFactory = Callable[[PipelineConfig], PreviewServerSupervisor]
SchedulerFactory = Callable[[PipelineConfig, Path], RenderScheduler]


class MissingBuildError(Exception):
    """Exception raised when the prebuilt output directory does not exist."""

    pass


class PrerenderPipeline:
    """
    Orchestrates one pre-rendering run.

    State progression: idle, config_loaded, server_starting, server_running,
    rendering, server_stopping, done. Fatal errors end the run early with an
    unsuccessful result.
    """

    def __init__(
        self,
        settings: Settings,
        supervisor_factory: Optional[SupervisorFactory] = None,
        scheduler_factory: Optional[SchedulerFactory] = None,
    ):
        self.settings = settings
        self.supervisor_factory = supervisor_factory or self._default_supervisor
        self.scheduler_factory = scheduler_factory or self._default_scheduler
        self.state = PipelineState.IDLE
        self.result = PipelineResult()
        self.logger: Any = logger.bind(component="pipeline")  # structlog.BoundLoggerBase

    def _default_supervisor(self, config: PipelineConfig) -> PreviewServerSupervisor:
        return PreviewServerSupervisor(
            port=config.preview_port,
            cwd=self.settings.project_root,
            command=self.settings.preview_command,
            settle_delay=self.settings.server_settle_delay,
            stop_grace=self.settings.server_stop_grace,
        )

    @staticmethod
    def _default_scheduler(config: PipelineConfig, output_dir: Path) -> RenderScheduler:
        return RenderScheduler(config, PageRenderer(config, output_dir))

    def _transition(self, state: PipelineState) -> None:
        self.state = state
        self.result.states.append(state)
        self.logger.debug("Pipeline state", state=state.value)

    async def run(self) -> PipelineResult:
        """
        Execute the full pipeline.

        Returns:
            PipelineResult; ``success`` is True only if every task succeeded
        """
        self.result = PipelineResult()
        self._transition(PipelineState.IDLE)
        self.logger.info("SSG Pre-Rendering - Starting")

        try:
            config = load_pipeline_config(self.settings.config_path, self.settings.routes_path)
            self.result.total = config.total_tasks
            self._transition(PipelineState.CONFIG_LOADED)

            dist_dir = self.settings.dist_dir
            if not dist_dir.is_dir():
                raise MissingBuildError(f"{dist_dir} not found. Run the build first")

            await self._serve_and_render(config, dist_dir)

        except (ConfigurationError, MissingBuildError, ServerStartError) as e:
            self.logger.error("Fatal error", error=str(e))
            return self.result
        finally:
            self._transition(PipelineState.DONE)

        self.logger.info(
            f"Complete: {self.result.success_count}/{self.result.total} successful "
            f"({len(config.routes)} routes × {len(config.locales)} locales × "
            f"{len(config.themes)} themes)",
            success=self.result.success,
        )
        return self.result

    async def _serve_and_render(self, config: PipelineConfig, dist_dir: Path) -> None:
        supervisor = self.supervisor_factory(config)
        self._transition(PipelineState.SERVER_STARTING)

        async with supervisor.running(
            on_stopping=lambda: self._transition(PipelineState.SERVER_STOPPING)
        ):
            self._transition(PipelineState.SERVER_RUNNING)
            SiteArtifactGenerator(config, dist_dir).generate_all(self.settings.worker_template_path)

            self._transition(PipelineState.RENDERING)
            self.logger.info("Pre-rendering", routes=len(config.routes), tasks=config.total_tasks)
            scheduler = self.scheduler_factory(config, dist_dir)
            self.result.success_count = await scheduler.render_all()
