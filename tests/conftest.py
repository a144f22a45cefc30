"""
Test Configuration
==================

Pytest configuration with fixtures for all test types.
Provides pipeline configuration data, on-disk project layouts and settings.
"""

import pytest
from pathlib import Path
from typing import Any, Dict

import yaml

from prerender.config.settings import Settings
from prerender.models.schemas import PipelineConfig

from tests.utils.mocks import WORKER_TEMPLATE


@pytest.fixture
def pipeline_settings_data() -> Dict[str, Any]:
    """Pipeline settings as they appear in the YAML settings file."""
    return {
        "production_url": "https://www.example.test",
        "preview_port": 4173,
        "default_locale": "tr",
        "default_theme": "light",
        "locales": ["tr", "en"],
        "themes": ["light", "dark"],
        "exclude_from_sitemap": ["/admin"],
        "playwright": {"headless": True, "concurrency": 2},
        "page_load_timeout": 30,
        "wait_for_ready_timeout": 10,
        "network_idle_timeout": 10,
        "additional_wait": 0,
    }


@pytest.fixture
def routes_data() -> Dict[str, Any]:
    """Route list as it appears in routes.yaml."""
    return {"routes": ["/", "/about"]}


@pytest.fixture
def pipeline_config(pipeline_settings_data, routes_data) -> PipelineConfig:
    """Validated pipeline configuration."""
    return PipelineConfig.model_validate({**pipeline_settings_data, **routes_data})


@pytest.fixture
def project_dir(tmp_path: Path, pipeline_settings_data, routes_data) -> Path:
    """Project root with settings, routes, worker template and a built dist/."""
    (tmp_path / "prerender.yaml").write_text(
        yaml.safe_dump(pipeline_settings_data), encoding="utf-8"
    )
    (tmp_path / "routes.yaml").write_text(yaml.safe_dump(routes_data), encoding="utf-8")
    (tmp_path / "_worker.js").write_text(WORKER_TEMPLATE, encoding="utf-8")
    dist = tmp_path / "dist"
    dist.mkdir()
    (dist / "index.html").write_text("<!doctype html><div id=\"root\"></div>", encoding="utf-8")
    return tmp_path


@pytest.fixture
def test_settings(project_dir: Path) -> Settings:
    """Settings pointed at the temporary project."""
    return Settings(
        environment="testing",
        log_level="DEBUG",
        project_root=project_dir,
        server_settle_delay=0,
        server_stop_grace=0.5,
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on file paths."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
