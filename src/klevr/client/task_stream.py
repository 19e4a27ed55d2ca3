from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator

import httpx
from pydantic import ValidationError

from klevr.types import TaskUpdate

logger = logging.getLogger(__name__)

STREAM_PATH = "/api/ai-tasks/stream"


class TaskStatusSubscription:
    def __init__(
        self,
        http: httpx.Client,
        task_id: str,
        on_complete: Callable[[str], None] | None = None,
    ):
        self.http = http
        self.task_id = task_id
        self.on_complete = on_complete
        self.status = "PENDING"
        self.error: str | None = None
        self.result: str | None = None
        self.closed = False
        self._started = False
        self._completed = False
        self._response: httpx.Response | None = None

    @property
    def is_loading(self) -> bool:
        return self.status in {"PENDING", "RUNNING"}

    def __iter__(self) -> Iterator[TaskUpdate]:
        if self._started:
            raise RuntimeError("subscription has already been consumed")
        self._started = True
        return self._updates()

    def __enter__(self) -> TaskStatusSubscription:
        return self

    def __exit__(self, *_exc) -> None:
        self.close()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        response, self._response = self._response, None
        if response is not None:
            response.close()

    def watch(self) -> str:
        """Drain the stream and return the last status seen."""
        for _update in self:
            pass
        return self.status

    def _updates(self) -> Iterator[TaskUpdate]:
        if self.closed:
            return
        try:
            with self.http.stream("GET", STREAM_PATH, params={"taskId": self.task_id}) as response:
                self._response = response
                if response.status_code != 200:
                    logger.debug("Task stream %s rejected with %s", self.task_id, response.status_code)
                    return
                for line in response.iter_lines():
                    if self.closed:
                        return
                    if not line.startswith("data:"):
                        continue
                    update = TaskUpdate.model_validate(json.loads(line[len("data:"):].strip()))
                    self._apply(update)
                    yield update
                    if update.is_terminal:
                        return
        except (httpx.HTTPError, ValueError, ValidationError) as exc:
            logger.debug("Task stream %s ended: %s", self.task_id, exc)
        finally:
            self.close()

    def _apply(self, update: TaskUpdate) -> None:
        self.status = update.status
        self.error = update.error_message or None
        self.result = update.result_ref or None
        if update.status == "SUCCEEDED" and update.result_ref and self.on_complete and not self._completed:
            self._completed = True
            self.on_complete(update.result_ref)
