"""
Pydantic Models and Schemas
===========================

Core data models for the pre-rendering pipeline: the assembled pipeline
configuration, render tasks and their results, and the output path mapping.
"""

from typing import Optional, List, Tuple
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class PipelineState(str, Enum):
    """Orchestrator lifecycle states."""
    IDLE = "idle"
    CONFIG_LOADED = "config_loaded"
    SERVER_STARTING = "server_starting"
    SERVER_RUNNING = "server_running"
    RENDERING = "rendering"
    SERVER_STOPPING = "server_stopping"
    DONE = "done"


class BrowserOptions(BaseModel):
    """Browser launch options."""
    model_config = ConfigDict(frozen=True)

    headless: bool = Field(default=False, description="Run Chromium without a window")
    concurrency: int = Field(default=5, ge=1, description="Simultaneous pages in flight")


class PipelineConfig(BaseModel):
    """Immutable pipeline configuration merged from settings and route list."""
    model_config = ConfigDict(frozen=True)

    production_url: str = Field(..., min_length=1)
    preview_port: int = Field(..., gt=0, lt=65536)
    default_locale: str
    default_theme: str
    locales: Tuple[str, ...] = Field(..., min_length=1)
    themes: Tuple[str, ...] = Field(..., min_length=1)
    routes: Tuple[str, ...] = Field(..., min_length=1)
    exclude_from_sitemap: Tuple[str, ...] = Field(default_factory=tuple)
    playwright: BrowserOptions = Field(default_factory=BrowserOptions)

    # Durations in seconds
    page_load_timeout: float = Field(..., ge=0)
    wait_for_ready_timeout: float = Field(..., ge=0)
    network_idle_timeout: float = Field(..., ge=0)
    additional_wait: float = Field(..., ge=0)

    # Readiness and capture heuristics
    root_selector: str = "#root"
    ready_min_length: int = Field(default=100, ge=0)
    min_html_length: int = Field(default=1000, ge=0)
    assets_marker: str = "/assets/"
    entry_chunk_marker: str = "/assets/index-"

    @field_validator("production_url")
    @classmethod
    def validate_production_url(cls, v: str) -> str:
        """Require an http(s) origin; the trailing slash is dropped."""
        if not v.startswith(("https://", "http://")):
            raise ValueError(f"production_url must start with http:// or https://: {v!r}")
        return v.rstrip("/")

    @field_validator("exclude_from_sitemap", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return () if v is None else v

    @field_validator("locales", "themes")
    @classmethod
    def validate_variant_codes(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        """Variant codes become filename suffixes, so they must be plain tokens."""
        for code in v:
            if not code or "." in code or "/" in code:
                raise ValueError(f"Invalid variant code: {code!r}")
        if len(set(v)) != len(v):
            raise ValueError("Variant codes must be unique")
        return v

    @field_validator("routes")
    @classmethod
    def validate_routes(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        """Validate route paths."""
        for route in v:
            if not route.startswith("/"):
                raise ValueError(f"Route must start with '/': {route!r}")
            if route == "/":
                continue
            if route.endswith("/"):
                raise ValueError(f"Route must not end with '/': {route!r}")
            # Each segment becomes one output directory
            if any(segment in ("", ".", "..") for segment in route[1:].split("/")):
                raise ValueError(f"Route has an empty or relative segment: {route!r}")
            if "\\" in route:
                raise ValueError(f"Route must not contain '\\': {route!r}")
        if len(set(v)) != len(v):
            raise ValueError("Routes must be unique")
        return v

    @model_validator(mode="after")
    def validate_defaults(self) -> "PipelineConfig":
        """Check defaults belong to their lists and the suffix spaces are disjoint."""
        if self.default_locale not in self.locales:
            raise ValueError(f"default_locale {self.default_locale!r} not in locales")
        if self.default_theme not in self.themes:
            raise ValueError(f"default_theme {self.default_theme!r} not in themes")
        shared = set(self.locales) & set(self.themes)
        if shared:
            raise ValueError(f"Codes used as both locale and theme: {sorted(shared)}")
        return self

    @property
    def concurrency(self) -> int:
        return self.playwright.concurrency

    @property
    def production_domain(self) -> str:
        """Production host with the scheme removed."""
        return self.production_url.replace("https://", "").replace("http://", "")

    @property
    def total_tasks(self) -> int:
        return len(self.routes) * len(self.locales) * len(self.themes)


class RenderTask(BaseModel):
    """One cell of the route x locale x theme space."""
    model_config = ConfigDict(frozen=True)

    route: str
    locale: str
    theme: str

    def __str__(self) -> str:
        return f"{self.route} [{self.locale}] [{self.theme}]"


class ResourceSet(BaseModel):
    """Asset paths observed while rendering a single task."""
    stylesheets: List[str] = Field(default_factory=list)
    scripts: List[str] = Field(default_factory=list)

    def add_stylesheet(self, path: str) -> None:
        if path not in self.stylesheets:
            self.stylesheets.append(path)

    def add_script(self, path: str) -> None:
        if path not in self.scripts:
            self.scripts.append(path)

    def __len__(self) -> int:
        return len(self.stylesheets) + len(self.scripts)


class RenderResult(BaseModel):
    """Outcome of one render task."""
    task: RenderTask
    success: bool
    output_path: Optional[str] = None
    error: Optional[str] = None


class PipelineResult(BaseModel):
    """Aggregate outcome of a pipeline run."""
    success_count: int = 0
    total: int = 0
    states: List[PipelineState] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.total > 0 and self.success_count == self.total


def output_path_for(task: RenderTask, config: PipelineConfig) -> str:
    """
    Derive the output file path for a task, relative to the output root.

    The default locale and theme produce the canonical ``index.html`` form;
    other variants append ``.{theme}`` then ``.{locale}`` before ``.html``.

    Args:
        task: Render task
        config: Pipeline configuration holding the defaults

    Returns:
        Relative POSIX path such as ``about/index.dark.en.html``
    """
    base = "index" if task.route == "/" else f"{task.route[1:]}/index"
    theme_suffix = "" if task.theme == config.default_theme else f".{task.theme}"
    locale_suffix = "" if task.locale == config.default_locale else f".{task.locale}"
    return f"{base}{theme_suffix}{locale_suffix}.html"
