from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from livequiz.api.deps import get_runtime
from livequiz.runtime import QuizRuntime
from livequiz.runtime_utils import sanitize_session_id

router = APIRouter(tags=["sessions"])


@router.get("/api/sessions/{session_id}")
async def session_snapshot(
    session_id: str,
    runtime: QuizRuntime = Depends(get_runtime),
) -> dict[str, object]:
    snapshot = runtime.session_snapshot(sanitize_session_id(session_id))
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return snapshot
