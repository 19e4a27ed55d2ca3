from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, TypeVar

from celery import Task
from celery.result import AsyncResult
from celery.schedules import crontab

from klevr.config import Settings, get_settings
from klevr.core.storage import ObjectStorage
from klevr.db.base import new_id, utcnow
from klevr.db.session import SessionFactory, SessionLocal
from klevr.errors import error_kind, should_retry
from klevr.functions.celery_app import celery_app
from klevr.llm.router import LLMRouter

logger = logging.getLogger(__name__)

Handler = Callable[["FunctionContext"], Any]
T = TypeVar("T")


@dataclass(slots=True)
class Event:
    name: str
    data: dict[str, Any]
    id: str = field(default_factory=new_id)
    ts: datetime = field(default_factory=utcnow)

    def as_message(self) -> dict[str, Any]:
        return {"name": self.name, "data": self.data, "id": self.id, "ts": self.ts.isoformat()}

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> Event:
        return cls(
            name=message["name"],
            data=dict(message.get("data") or {}),
            id=message["id"],
            ts=datetime.fromisoformat(message["ts"]),
        )


@dataclass(slots=True)
class FunctionSpec:
    id: str
    name: str
    handler: Handler
    retries: int = 0
    event: str | None = None
    cron: str | None = None

    def describe(self) -> dict[str, Any]:
        trigger = {"event": self.event} if self.event else {"cron": self.cron}
        return {"id": self.id, "name": self.name, "retries": self.retries, "triggers": [trigger]}

    def schedule(self) -> crontab | None:
        if not self.cron:
            return None
        minute, hour, day_of_month, month_of_year, day_of_week = self.cron.split()
        return crontab(
            minute=minute,
            hour=hour,
            day_of_month=day_of_month,
            month_of_year=month_of_year,
            day_of_week=day_of_week,
        )


@dataclass
class FunctionContext:
    event: Event
    attempt: int
    max_attempts: int
    session_factory: SessionFactory
    storage: ObjectStorage
    llm: LLMRouter
    settings: Settings
    events: EventClient
    logger: logging.Logger
    # Carried to the next attempt with the retried task.
    state: dict[str, Any] = field(default_factory=dict)

    @property
    def is_final_attempt(self) -> bool:
        return self.attempt + 1 >= self.max_attempts

    def will_retry(self, error: BaseException) -> bool:
        return not self.is_final_attempt and should_retry(error)

    def step(self, step_id: str, fn: Callable[[], T]) -> T:
        """Run ``fn`` once per run; later attempts reuse the recorded result."""
        if step_id in self.state:
            return self.state[step_id]
        result = fn()
        self.state[step_id] = result
        return result


@dataclass
class FunctionRun:
    function_id: str
    event_id: str
    event_name: str
    task_id: str
    status: str
    result: Any = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def from_result(cls, spec: FunctionSpec, event: Event, result: AsyncResult) -> FunctionRun:
        run = cls(function_id=spec.id, event_id=event.id, event_name=event.name, task_id=result.id, status="Completed")
        if result.successful():
            run.result = result.result
        else:
            run.status = "Failed"
            run.error = str(result.result)
            run.error_code = error_kind(result.result).code
        return run

    def as_dict(self) -> dict[str, Any]:
        return {
            "function_id": self.function_id,
            "event_id": self.event_id,
            "event_name": self.event_name,
            "task_id": self.task_id,
            "status": self.status,
            "error": self.error,
            "error_code": self.error_code,
        }


def function_task(spec: FunctionSpec) -> Task:
    """Celery task named after ``spec.id``, created on first use."""
    if spec.id in celery_app.tasks:
        return celery_app.tasks[spec.id]
    return celery_app.task(bind=True, name=spec.id, max_retries=spec.retries, shared=False)(_run_function)


def _run_function(task: Task, event: dict[str, Any] | None = None, state: dict[str, Any] | None = None) -> Any:
    # klevr.core.runtime imports this module
    from klevr.core.runtime import get_event_client

    client = get_event_client()
    spec = client.get_function(task.name)
    message = Event.from_message(event) if event else Event(name=f"cron:{spec.cron}", data={})
    return client.run_attempt(task, spec, message, dict(state or {}))


class EventClient:
    def __init__(
        self,
        *,
        app_id: str = "klevr",
        settings: Settings | None = None,
        session_factory: SessionFactory = SessionLocal,
        storage: ObjectStorage | None = None,
        llm: LLMRouter | None = None,
    ):
        self.app_id = app_id
        self.settings = settings or get_settings()
        self.session_factory = session_factory
        self.storage = storage
        self.llm = llm or LLMRouter(self.settings)
        self._functions: dict[str, FunctionSpec] = {}

    @property
    def mode(self) -> str:
        return "eager" if celery_app.conf.task_always_eager else "worker"

    def create_function(
        self,
        *,
        id: str,
        name: str | None = None,
        retries: int = 0,
        event: str | None = None,
        cron: str | None = None,
    ) -> Callable[[Handler], Handler]:
        if bool(event) == bool(cron):
            raise ValueError("a function needs exactly one trigger: event or cron")

        def decorator(handler: Handler) -> Handler:
            self.register(
                FunctionSpec(id=id, name=name or id, handler=handler, retries=retries, event=event, cron=cron)
            )
            return handler

        return decorator

    def register(self, spec: FunctionSpec) -> None:
        if spec.id in self._functions:
            raise ValueError(f"function '{spec.id}' is already registered")
        function_task(spec)
        self._functions[spec.id] = spec

    @property
    def functions(self) -> list[FunctionSpec]:
        return list(self._functions.values())

    def get_function(self, function_id: str) -> FunctionSpec:
        try:
            return self._functions[function_id]
        except KeyError:
            raise ValueError(f"unknown function '{function_id}'") from None

    def functions_for(self, event_name: str) -> list[FunctionSpec]:
        return [spec for spec in self._functions.values() if spec.event == event_name]

    def send(self, name: str, data: dict[str, Any] | None = None) -> str:
        """Queue ``name`` for every function it triggers and return the event id."""
        event = Event(name=name, data=dict(data or {}))
        targets = self.functions_for(name)
        logger.info("Event %s id=%s -> %s function(s)", name, event.id, len(targets))

        for spec in targets:
            function_task(spec).apply_async(kwargs={"event": event.as_message()})
        return event.id

    def invoke(self, function_id: str, data: dict[str, Any] | None = None) -> FunctionRun:
        """Run one function in this process, regardless of its trigger."""
        spec = self.get_function(function_id)
        event = Event(name=spec.event or f"cron:{spec.cron}", data=dict(data or {}))
        result = function_task(spec).apply(kwargs={"event": event.as_message()})
        return FunctionRun.from_result(spec, event, result)

    def run_attempt(self, task: Task, spec: FunctionSpec, event: Event, state: dict[str, Any]) -> Any:
        attempt = task.request.retries
        ctx = FunctionContext(
            event=event,
            attempt=attempt,
            max_attempts=spec.retries + 1,
            session_factory=self.session_factory,
            storage=self.storage,
            llm=self.llm,
            settings=self.settings,
            events=self,
            logger=logging.getLogger(f"klevr.functions.{spec.id}"),
            state=state,
        )
        try:
            return spec.handler(ctx)
        except Exception as exc:
            if not ctx.will_retry(exc):
                logger.exception("Function %s failed after %s attempt(s)", spec.id, attempt + 1)
                raise
            countdown = self.settings.event_retry_backoff_sec * 2**attempt
            logger.warning(
                "Function %s attempt %s/%s failed (%s); retrying in %.2fs",
                spec.id,
                attempt + 1,
                ctx.max_attempts,
                exc,
                countdown,
            )
            raise task.retry(
                exc=exc,
                countdown=countdown,
                kwargs={"event": event.as_message(), "state": ctx.state},
            ) from exc
