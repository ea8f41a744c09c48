from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from livequiz.api.router import api_router
from livequiz.config import settings
from livequiz.runtime import QuizRuntime, runtime as default_runtime

logger = logging.getLogger(__name__)


def create_app(runtime: QuizRuntime | None = None) -> FastAPI:
    quiz_runtime = runtime or default_runtime
    app = FastAPI(title="LiveQuiz Backend", version="1.0.0")
    app.state.runtime = quiz_runtime

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info(
            "Quiz runtime ready with %s questions (window=%sms, pause=%sms)",
            len(quiz_runtime.questions),
            quiz_runtime.question_time_ms,
            quiz_runtime.results_pause_ms,
        )

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await quiz_runtime.shutdown()

    return app


app = create_app()
