from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from klevr.api.deps import get_event_client
from klevr.api.schemas import EventSendRequest
from klevr.config import get_settings
from klevr.functions.client import EventClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/events", tags=["events"])


def verify_signature(request: Request) -> None:
    settings = get_settings()
    key = settings.event_signing_key
    if not key:
        if settings.requires_event_signature:
            logger.warning("Rejected event request: no signing key configured for %s", settings.app_env)
            raise HTTPException(status_code=401, detail="Invalid event signature")
        return

    supplied = request.headers.get("x-event-signature", "")
    if not supplied:
        scheme, _, credentials = request.headers.get("authorization", "").partition(" ")
        if scheme.lower() == "bearer":
            supplied = credentials.strip()
    if not supplied or not hmac.compare_digest(supplied, key):
        raise HTTPException(status_code=401, detail="Invalid event signature")


@router.get("", dependencies=[Depends(verify_signature)])
def describe(events: EventClient = Depends(get_event_client)) -> dict:
    return {
        "appId": events.app_id,
        "mode": events.mode,
        "functions": [spec.describe() for spec in events.functions],
    }


@router.put("", dependencies=[Depends(verify_signature)])
def sync(events: EventClient = Depends(get_event_client)) -> dict:
    logger.info("Event functions synced: %s", ", ".join(spec.id for spec in events.functions))
    return {"message": "Successfully registered", "functionCount": len(events.functions)}


@router.post("", dependencies=[Depends(verify_signature)])
def send(
    payload: EventSendRequest,
    fn_id: str | None = None,
    events: EventClient = Depends(get_event_client),
) -> dict:
    if fn_id:
        try:
            run = events.invoke(fn_id, payload.data)
        except ValueError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"run": run.as_dict()}

    event_id = events.send(payload.name, payload.data)
    return {"ids": [event_id], "status": 200}
