"""
Study session scheduler.

Wraps APScheduler with a persistent SQLAlchemy job store so scheduled study sessions
survive restarts. Each job belongs to one conversation; its task name, payload and
trigger details live in the job kwargs, so the job store is the single source of truth.

Task callbacks are registered by name. The job callable itself is a module-level
coroutine so APScheduler can pickle it by reference.
"""

from __future__ import annotations

import inspect
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Union
from uuid import uuid4

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.base import BaseJobStore
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger

from agents.core.errors import ScheduleError, ScheduleNotFoundError

logger = logging.getLogger(__name__)

Trigger = Union[datetime, int, float, str]
TaskCallback = Callable[[str, Any], Union[Any, Awaitable[Any]]]

# Set by StudyScheduler.start(); read by the job callable below.
_instance: Optional["StudyScheduler"] = None


async def _fire_scheduled_job(task_name: str, payload: Any, conversation_id: str, **_extra) -> None:
    """
    Module-level coroutine used as the APScheduler job callable.
    **_extra absorbs the descriptor kwargs stored alongside the job.
    """
    if _instance is not None:
        await _instance._fire(task_name, payload, conversation_id)


class StudyScheduler:
    def __init__(
        self,
        db_url: str = "sqlite:///./scheduler.db",
        timezone: str = "UTC",
        jobstore: Optional[BaseJobStore] = None,
    ) -> None:
        self._db_url = db_url
        self._timezone = timezone
        self._jobstore = jobstore
        self._tasks: Dict[str, TaskCallback] = {}
        self._scheduler: Optional[AsyncIOScheduler] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def register_task(self, name: str, callback: TaskCallback) -> None:
        self._tasks[name] = callback

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Start on the running event loop."""
        if self.running:
            return
        jobstore = self._jobstore or SQLAlchemyJobStore(url=self._db_url)
        self._scheduler = AsyncIOScheduler(
            jobstores={"default": jobstore},
            executors={"default": AsyncIOExecutor()},
            timezone=self._timezone,
        )
        self._scheduler.start()

        global _instance
        _instance = self
        logger.info("[scheduler] started (timezone=%s jobs=%s)", self._timezone, len(self._scheduler.get_jobs()))

    def stop(self) -> None:
        global _instance
        if self._scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("[scheduler] stopped")
        if _instance is self:
            _instance = None

    # ------------------------------------------------------------------
    # Schedules (called by the study session tools)
    # ------------------------------------------------------------------

    def schedule(self, trigger: Trigger, task_name: str, payload: Any, *, conversation_id: str) -> str:
        """
        Schedule `task_name` with `payload`. `trigger` is an absolute datetime, a delay in
        seconds, or a five-field cron expression. Returns the schedule id.
        """
        if not self.running:
            raise ScheduleError("scheduler is not running")
        ap_trigger, kind, extra = self._parse_trigger(trigger)
        schedule_id = uuid4().hex
        self._scheduler.add_job(
            _fire_scheduled_job,
            trigger=ap_trigger,
            id=schedule_id,
            name=task_name,
            kwargs={
                "task_name": task_name,
                "payload": payload,
                "conversation_id": conversation_id,
                "schedule_type": kind,
                "created": datetime.now(timezone.utc).isoformat(),
                **extra,
            },
            misfire_grace_time=3600,
        )
        job = self._scheduler.get_job(schedule_id)
        logger.info(
            "schedule added id=%s type=%s task=%s conversation=%s next=%s",
            schedule_id, kind, task_name, conversation_id, job.next_run_time if job else None,
        )
        return schedule_id

    def list_schedules(self, conversation_id: Optional[str] = None) -> list[dict]:
        if not self.running:
            raise ScheduleError("scheduler is not running")
        result = []
        for job in self._scheduler.get_jobs():
            kwargs = job.kwargs or {}
            if conversation_id is not None and kwargs.get("conversation_id") != conversation_id:
                continue
            item = {
                "id": job.id,
                "callback": kwargs.get("task_name"),
                "payload": kwargs.get("payload"),
                "type": kwargs.get("schedule_type"),
                "time": job.next_run_time.isoformat() if job.next_run_time else None,
            }
            for key in ("delay_in_seconds", "cron"):
                if key in kwargs:
                    item[key] = kwargs[key]
            result.append(item)
        return result

    def cancel_schedule(self, schedule_id: str, conversation_id: Optional[str] = None) -> None:
        if not self.running:
            raise ScheduleError("scheduler is not running")
        job = self._scheduler.get_job(schedule_id)
        if job is None:
            raise ScheduleNotFoundError(schedule_id)
        if conversation_id is not None and (job.kwargs or {}).get("conversation_id") != conversation_id:
            raise ScheduleNotFoundError(schedule_id)
        self._scheduler.remove_job(schedule_id)
        logger.info("schedule cancelled id=%s", schedule_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _parse_trigger(self, trigger: Trigger) -> tuple[Any, str, dict]:
        if isinstance(trigger, datetime):
            run_date = trigger if trigger.tzinfo else trigger.replace(tzinfo=timezone.utc)
            return DateTrigger(run_date=run_date), "scheduled", {}
        if isinstance(trigger, bool):
            raise ScheduleError(f"not a valid schedule trigger: {trigger!r}")
        if isinstance(trigger, (int, float)):
            if trigger < 0:
                raise ScheduleError(f"delay must not be negative: {trigger}")
            run_date = datetime.now(timezone.utc) + timedelta(seconds=float(trigger))
            return DateTrigger(run_date=run_date), "delayed", {"delay_in_seconds": trigger}
        if isinstance(trigger, str):
            try:
                cron = CronTrigger.from_crontab(trigger.strip(), timezone=self._timezone)
            except ValueError as e:
                raise ScheduleError(f"invalid cron expression {trigger!r}: {e}") from e
            return cron, "cron", {"cron": trigger.strip()}
        raise ScheduleError(f"not a valid schedule trigger: {trigger!r}")

    async def _fire(self, task_name: str, payload: Any, conversation_id: str) -> None:
        callback = self._tasks.get(task_name)
        if callback is None:
            logger.error("no task registered for scheduled job task=%s conversation=%s", task_name, conversation_id)
            return
        logger.info("firing scheduled task=%s conversation=%s", task_name, conversation_id)
        try:
            result = callback(conversation_id, payload)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("scheduled task failed task=%s conversation=%s", task_name, conversation_id)
