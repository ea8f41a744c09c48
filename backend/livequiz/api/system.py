from __future__ import annotations

from fastapi import APIRouter, Depends

from livequiz.api.deps import get_runtime
from livequiz.runtime import QuizRuntime

router = APIRouter(tags=["system"])


@router.get("/api/health")
async def health(runtime: QuizRuntime = Depends(get_runtime)) -> dict[str, object]:
    ws_stats = runtime.get_ws_stats()
    ws_summary = {
        "activeConnections": ws_stats["stats"].get("activeConnections", 0),
        "peakConnections": ws_stats["stats"].get("peakConnections", 0),
        "messageReceived": ws_stats["stats"].get("messageReceived", 0),
        "rejectedMessages": ws_stats["stats"].get("rejectedMessages", 0),
    }
    return {
        "ok": True,
        "activeSessions": runtime.active_sessions_count,
        "websocket": ws_summary,
    }


@router.get("/api/ws-stats")
async def websocket_stats(runtime: QuizRuntime = Depends(get_runtime)) -> dict[str, object]:
    return runtime.get_ws_stats()
