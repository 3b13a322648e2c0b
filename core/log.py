"""Rotating file logging shared by the background services."""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from core.settings import LOG_PATH

ROOT_LOGGER = "daycare"


def _ensure_root(path: Path) -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if not any(isinstance(h, RotatingFileHandler) for h in root.handlers):
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(logging.INFO)
    return root


def get_logger(name: str, path: Optional[Path] = None) -> logging.Logger:
    """Return ``daycare.<name>``; the file handler is attached once on the root."""
    _ensure_root(Path(path or LOG_PATH))
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def read_log_tail(lines: int = 100, path: Optional[Path] = None) -> str:
    target = Path(path or LOG_PATH)
    try:
        with open(target, "r", encoding="utf-8") as fh:
            content = fh.readlines()
    except FileNotFoundError:
        return "No log has been written yet."
    content = [line.rstrip("\n") for line in content[-lines:]]
    return "\n".join(content)


__all__ = ["get_logger", "read_log_tail", "ROOT_LOGGER"]
