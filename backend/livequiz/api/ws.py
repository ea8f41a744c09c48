from __future__ import annotations

from fastapi import APIRouter, Depends, WebSocket

from livequiz.api.deps import get_ws_runtime
from livequiz.runtime import QuizRuntime

router = APIRouter(tags=["websocket"])


@router.websocket("/api/ws")
async def websocket_api(ws: WebSocket, runtime: QuizRuntime = Depends(get_ws_runtime)) -> None:
    await runtime.handle_websocket(ws)


@router.websocket("/ws")
async def websocket_compat(ws: WebSocket, runtime: QuizRuntime = Depends(get_ws_runtime)) -> None:
    await runtime.handle_websocket(ws)
