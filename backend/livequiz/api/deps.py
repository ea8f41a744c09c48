from __future__ import annotations

from fastapi import Request, WebSocket

from livequiz.runtime import QuizRuntime


def get_runtime(request: Request) -> QuizRuntime:
    return request.app.state.runtime


def get_ws_runtime(websocket: WebSocket) -> QuizRuntime:
    return websocket.app.state.runtime
