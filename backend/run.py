from __future__ import annotations

import uvicorn

from livequiz.config import settings


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.ws_port,
        reload=settings.reload,
        reload_dirs=["backend"] if settings.reload else None,
        log_level=settings.log_level.lower(),
    )
