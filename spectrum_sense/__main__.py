from __future__ import annotations

import logging
import os
import sys
from pathlib import Path


def _ensure_repo_root_on_path() -> None:
    """Put the directory holding ``spectrum_sense`` on ``sys.path``.

    Running ``python spectrum_sense/__main__.py`` directly leaves the package
    undiscoverable; module execution (``python -m spectrum_sense``) does not
    need this.
    """
    pkg_dir = Path(__file__).resolve().parent
    repo_root_str = str(pkg_dir.parent)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


try:
    # python -m spectrum_sense
    from .app import run  # type: ignore[attr-defined]
except ImportError:
    # Executed as a plain script.
    _ensure_repo_root_on_path()
    from spectrum_sense.app import run  # type: ignore[attr-defined]


def main() -> int:
    """Entry point for running SpectrumSense from the command line."""
    level = os.environ.get("SPECTRUM_SENSE_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return run()


if __name__ == "__main__":
    raise SystemExit(main())
