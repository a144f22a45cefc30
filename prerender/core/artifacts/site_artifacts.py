"""
Site Artifact Generator
=======================

Derive ``sitemap.xml`` and ``robots.txt`` from the route list and build the
edge worker script with the runtime locale/theme configuration.
"""

from typing import Any, Callable, Dict, List, Optional
from datetime import date, datetime, timezone
from pathlib import Path
import json

import jinja2

from prerender.config.logging import get_logger
from prerender.models.schemas import PipelineConfig

logger = get_logger(__name__)

SITEMAP_FILENAME = "sitemap.xml"
ROBOTS_FILENAME = "robots.txt"
WORKER_FILENAME = "_worker.js"

# Route depth -> (priority, change frequency); deeper routes use the last row
DEPTH_TABLE = [
    ("1.0", "weekly"),
    ("0.8", "monthly"),
    ("0.6", "monthly"),
    ("0.4", "yearly"),
]

WORKER_PLACEHOLDERS = ("__LOCALES__", "__DEFAULT_LOCALE__", "__THEMES__", "__DEFAULT_THEME__")


class ArtifactGenerationError(Exception):
    """Exception raised when a site artifact cannot be produced."""

    pass


def route_depth(route: str) -> int:
    """Number of non-empty path segments; the root has depth 0."""
    return len([segment for segment in route.split("/") if segment])


def priority_for(route: str) -> str:
    return DEPTH_TABLE[min(route_depth(route), len(DEPTH_TABLE) - 1)][0]


def changefreq_for(route: str) -> str:
    return DEPTH_TABLE[min(route_depth(route), len(DEPTH_TABLE) - 1)][1]


def _base_url(config: PipelineConfig) -> str:
    return config.production_url.rstrip("/")


def _template_environment() -> jinja2.Environment:
    """Jinja2 environment over the packaged artifact templates."""
    template_dir = Path(__file__).parent / "templates"
    return jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(template_dir)),
        autoescape=jinja2.select_autoescape(["html", "xml"]),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def sitemap_routes(config: PipelineConfig) -> List[str]:
    """Routes listed in the sitemap, in configuration order."""
    excluded = set(config.exclude_from_sitemap)
    return [route for route in config.routes if route not in excluded]


def generate_sitemap(config: PipelineConfig, today: Optional[date] = None) -> str:
    """
    Render sitemap.xml for every route not excluded.

    Args:
        config: Pipeline configuration
        today: Date used for ``lastmod``; defaults to the current UTC date

    Returns:
        Sitemap XML document
    """
    lastmod = (today or datetime.now(timezone.utc).date()).isoformat()
    base_url = _base_url(config)

    entries: List[Dict[str, Any]] = [
        {
            "loc": f"{base_url}/" if route == "/" else f"{base_url}{route}",
            "changefreq": changefreq_for(route),
            "priority": priority_for(route),
        }
        for route in sitemap_routes(config)
    ]

    template = _template_environment().get_template(SITEMAP_FILENAME)
    return template.render(entries=entries, lastmod=lastmod)


def generate_robots_txt(config: PipelineConfig) -> str:
    """Render a permissive robots.txt pointing at the sitemap."""
    template = _template_environment().get_template(ROBOTS_FILENAME)
    return template.render(base_url=_base_url(config))


def inject_worker_config(template: str, config: PipelineConfig) -> str:
    """Substitute locale and theme settings into the worker script template."""
    values = {
        "__LOCALES__": json.dumps(list(config.locales)),
        "__DEFAULT_LOCALE__": f"'{config.default_locale}'",
        "__THEMES__": json.dumps(list(config.themes)),
        "__DEFAULT_THEME__": f"'{config.default_theme}'",
    }
    for placeholder in WORKER_PLACEHOLDERS:
        template = template.replace(placeholder, values[placeholder])
    return template


class SiteArtifactGenerator:
    """Write site artifacts into the output tree; failures are warnings."""

    def __init__(self, config: PipelineConfig, output_dir: Path):
        self.config = config
        self.output_dir = output_dir
        self.logger: Any = logger.bind(component="site_artifacts")  # structlog.BoundLoggerBase

    def write_sitemap(self, today: Optional[date] = None) -> Path:
        path = self.output_dir / SITEMAP_FILENAME
        self._write(path, lambda: generate_sitemap(self.config, today))
        self.logger.info("Sitemap generated", urls=len(sitemap_routes(self.config)))
        return path

    def write_robots_txt(self) -> Path:
        path = self.output_dir / ROBOTS_FILENAME
        self._write(path, lambda: generate_robots_txt(self.config))
        self.logger.info("robots.txt generated")
        return path

    def _write(self, path: Path, render: Callable[[], str]) -> None:
        try:
            path.write_text(render(), encoding="utf-8")
        except (OSError, jinja2.TemplateError) as e:
            raise ArtifactGenerationError(f"Cannot write {path.name}: {e}")

    def build_worker(self, template_path: Path) -> Optional[Path]:
        """
        Build the edge worker from its template.

        Returns:
            Path of the written worker, or None if the template could not be
            read or the worker could not be written
        """
        try:
            template = template_path.read_text(encoding="utf-8")
            path = self.output_dir / WORKER_FILENAME
            path.write_text(inject_worker_config(template, self.config), encoding="utf-8")
        except (OSError, UnicodeError) as e:
            self.logger.warning("Failed to build worker", template=str(template_path), error=str(e))
            return None

        self.logger.info(
            "Worker built",
            locales=list(self.config.locales),
            themes=list(self.config.themes),
        )
        return path

    def generate_all(self, worker_template_path: Optional[Path] = None) -> List[Path]:
        """Write every artifact, logging and skipping any that fail."""
        written: List[Path] = []

        if worker_template_path is not None:
            worker = self.build_worker(worker_template_path)
            if worker:
                written.append(worker)

        try:
            written.append(self.write_sitemap())
            written.append(self.write_robots_txt())
        except ArtifactGenerationError as e:
            self.logger.warning("Failed to generate sitemap/robots.txt", error=str(e))

        return written
