from __future__ import annotations

import logging

from livequiz.config import settings

logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))

from livequiz.application import app  # noqa: E402

__all__ = ["app"]
