from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from klevr.api.deps import get_db, require_user
from klevr.api.schemas import TaskStatusResponse
from klevr.config import get_settings
from klevr.db.models import AiTask, User
from klevr.db.repositories import Repository
from klevr.db.session import SessionFactory, SessionLocal
from klevr.types import TERMINAL_TASK_STATUSES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai-tasks", tags=["ai-tasks"])


def task_payload(task: AiTask) -> dict[str, str | None]:
    return {"status": task.status, "result_ref": task.result_ref, "error_message": task.error_message}


def format_sse(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def _read_task(session_factory: SessionFactory, task_id: str) -> dict[str, str | None] | None:
    with session_factory() as session:
        task = Repository(session).get_ai_task(task_id)
        return task_payload(task) if task else None


async def stream_task_updates(
    request: Request,
    task_id: str,
    initial: dict[str, str | None],
    *,
    poll_interval: float,
    session_factory: SessionFactory = SessionLocal,
) -> AsyncIterator[str]:
    yield format_sse(initial)
    if initial["status"] in TERMINAL_TASK_STATUSES:
        return

    while True:
        await asyncio.sleep(poll_interval)
        if await request.is_disconnected():
            logger.debug("Client disconnected from task stream %s", task_id)
            return

        try:
            payload = await run_in_threadpool(_read_task, session_factory, task_id)
        except Exception:
            logger.exception("Polling task %s failed; closing stream", task_id)
            return

        if payload is None:
            return
        yield format_sse(payload)
        if payload["status"] in TERMINAL_TASK_STATUSES:
            return


@router.get("/stream")
def stream_task(
    request: Request,
    taskId: str | None = None,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
) -> StreamingResponse:
    if not taskId:
        raise HTTPException(status_code=400, detail="Missing taskId")

    task = Repository(db).get_owned_ai_task(taskId, user.id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")

    generator = stream_task_updates(
        request,
        task.id,
        task_payload(task),
        poll_interval=get_settings().task_stream_poll_interval_sec,
    )
    return StreamingResponse(
        generator,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.get("/{task_id}", response_model=TaskStatusResponse)
def get_task(task_id: str, user: User = Depends(require_user), db: Session = Depends(get_db)) -> TaskStatusResponse:
    task = Repository(db).get_owned_ai_task(task_id, user.id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return TaskStatusResponse(**task_payload(task))
