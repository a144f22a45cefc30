"""
Command Line Entry Point
========================

``prerender`` console script. Exits 0 only when every route, locale and theme
combination rendered successfully, so CI can gate deployment on it.
"""

from typing import Any, Dict, List, Optional
from pathlib import Path
import argparse
import asyncio
import sys

from pydantic import ValidationError

from prerender.config.logging import get_logger, setup_logging
from prerender.config.settings import reload_settings
from prerender.pipeline import PrerenderPipeline

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prerender",
        description="Pre-render a built single-page application into static HTML",
    )
    parser.add_argument("--project-root", type=Path, help="Application project root")
    parser.add_argument("--config", type=Path, dest="config_path", help="Pipeline settings YAML")
    parser.add_argument("--routes", type=Path, dest="routes_path", help="Route list YAML")
    parser.add_argument("--dist-dir", type=Path, help="Prebuilt output directory")
    parser.add_argument(
        "--worker-template", type=Path, dest="worker_template_path", help="Edge worker template"
    )
    parser.add_argument("--log-level", help="Logging level")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the pipeline and return the process exit code."""
    args = build_parser().parse_args(argv)
    overrides: Dict[str, Any] = {
        key: value for key, value in vars(args).items() if value is not None
    }

    try:
        settings = reload_settings(**overrides)
    except ValidationError as e:
        logger.error("Invalid settings", error=str(e))
        return 1
    setup_logging(settings)

    try:
        result = asyncio.run(PrerenderPipeline(settings).run())
    except Exception as e:
        logger.error("Unhandled error", error=str(e), exc_info=True)
        return 1

    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
