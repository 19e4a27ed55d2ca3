from __future__ import annotations

from typing import Any

from klevr.functions.client import FunctionContext, FunctionSpec


def resume_parse(ctx: FunctionContext) -> dict[str, Any]:
    # Parsing runs synchronously in POST /api/resume/parse.
    ctx.logger.info(
        "Resume parse event received user_id=%s resume_url=%s",
        ctx.event.data.get("userId"),
        ctx.event.data.get("resumeUrl"),
    )
    return {"success": True}


spec = FunctionSpec(id="resume-parse", name="Resume Parsing", handler=resume_parse, retries=2, event="resume/parse")
