from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

LOG_LEVEL_ENV = "MENTAL_MATH_LOG_LEVEL"


def _ensure_repo_root_on_path() -> None:
    """Ensure the repository root (parent of this package) is on ``sys.path``.

    If this module is executed as a script (``python mental_math_trainer/__main__.py``),
    the package may not be discoverable by Python. This helper inserts the
    parent directory of the package into ``sys.path`` so that imports resolve
    correctly.
    """
    pkg_dir = Path(__file__).resolve().parent
    repo_root_str = str(pkg_dir.parent)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


try:
    # Works when executed as a module: python -m mental_math_trainer
    from .app import run  # type: ignore[attr-defined]
except ImportError:
    # Works when executed as a script (VS Code “Run Python File”, absolute path, etc.)
    _ensure_repo_root_on_path()
    from mental_math_trainer.app import run  # type: ignore[attr-defined]


def configure_logging() -> None:
    """Configure root logging if no handlers are present."""
    root = logging.getLogger()
    if root.handlers:
        return
    level_name = os.environ.get(LOG_LEVEL_ENV, "WARNING").strip().upper()
    level = getattr(logging, level_name, logging.WARNING)
    root.setLevel(level if isinstance(level, int) else logging.WARNING)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    root.addHandler(handler)


def main() -> int:
    """Entry point for running the trainer from the command line."""
    configure_logging()
    return run()


if __name__ == "__main__":
    raise SystemExit(main())
