"""
Client controller for the habit and task lists.

The controller holds the user's id and the last fetched lists, and after
every mutation re-fetches the affected list in full. It works against a
`TrackerBackend`: `ApiBackend` talks to the HTTP service, `LocalBackend`
writes straight into a local record store.
"""

from __future__ import annotations

import logging
import re
from datetime import date, timedelta
from typing import Any, Callable, MutableMapping, Optional, Protocol
from urllib.parse import quote

import requests

from tracker.errors import NetworkFailureError, RecordNotFoundError
from tracker.records import RecordKind, new_user_id, sort_tasks_by_time
from tracker.store import JsonFileMapping, KeyValueRecordStore, RecordStore

logger = logging.getLogger(__name__)

USER_ID_KEY = "habit_tracker_user_id"
THEME_KEY = "habit_tracker_theme"
DEFAULT_TIMEOUT = 10  # seconds
_LEADING_INT = re.compile(r"\s*[+-]?\d+")


def toggle_date(dates: Optional[list], day: str) -> list:
    """Remove `day` if present, append it otherwise."""
    dates = list(dates or [])
    if day in dates:
        return [d for d in dates if d != day]
    return dates + [day]


def parse_goal(value: Any) -> Optional[int]:
    """
    Integer from the leading digits of `value` (`"5 days"` is 5), or None
    when there are none.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    match = _LEADING_INT.match(str(value if value is not None else ""))
    return int(match.group(0)) if match else None


class TrackerBackend(Protocol):
    """Capabilities the controller needs, regardless of where records live."""

    def list_habits(self, user_id: str) -> list[dict]:
        ...

    def list_tasks(self, user_id: str) -> list[dict]:
        ...

    def add_habit(self, user_id: str, title: str, goal: int) -> dict:
        ...

    def toggle_habit(self, habit: dict, today: str) -> dict:
        ...

    def delete_habit(self, habit_id: str) -> None:
        ...

    def add_task(self, user_id: str, title: str, time: str) -> dict:
        ...

    def toggle_task(self, task: dict) -> dict:
        ...

    def delete_task(self, task_id: str) -> None:
        ...


class ApiBackend:
    """Backend calling the tracker HTTP API."""

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _call(self, method: str, path: str, payload: Optional[dict] = None) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise NetworkFailureError(f"{method} {url} failed: {exc}") from exc

    def _json(self, method: str, path: str, payload: Optional[dict] = None) -> Any:
        return self._decode(method, path, self._call(method, path, payload))

    @staticmethod
    def _decode(method: str, path: str, response: requests.Response) -> Any:
        if response.status_code >= 400:
            raise NetworkFailureError(
                f"{method} {path} returned HTTP {response.status_code}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise NetworkFailureError(f"{method} {path} returned invalid JSON") from exc

    def _update(self, kind: RecordKind, record_id: str, fields: dict) -> dict:
        path = f"/{kind.value}s/{quote(record_id, safe='')}"
        response = self._call("PUT", path, fields)
        if response.status_code == 404:
            raise RecordNotFoundError(kind, record_id)
        return self._decode("PUT", path, response)

    def list_habits(self, user_id: str) -> list[dict]:
        return self._json("GET", f"/habits/{quote(user_id, safe='')}")

    def list_tasks(self, user_id: str) -> list[dict]:
        return self._json("GET", f"/tasks/{quote(user_id, safe='')}")

    def add_habit(self, user_id: str, title: str, goal: int) -> dict:
        return self._json("POST", "/habits", {"userId": user_id, "title": title, "goal": goal})

    def toggle_habit(self, habit: dict, today: str) -> dict:
        dates = toggle_date(habit.get("completedDates"), today)
        return self._update(RecordKind.HABIT, habit["id"], {"completedDates": dates})

    def delete_habit(self, habit_id: str) -> None:
        self._json("DELETE", f"/habits/{quote(habit_id, safe='')}")

    def add_task(self, user_id: str, title: str, time: str) -> dict:
        return self._json("POST", "/tasks", {"userId": user_id, "title": title, "time": time})

    def toggle_task(self, task: dict) -> dict:
        return self._update(RecordKind.TASK, task["id"], {"completed": not task.get("completed")})

    def delete_task(self, task_id: str) -> None:
        self._json("DELETE", f"/tasks/{quote(task_id, safe='')}")


class LocalBackend:
    """Backend writing directly into a record store, without a server."""

    def __init__(self, store: RecordStore):
        self.store = store

    def list_habits(self, user_id: str) -> list[dict]:
        return self.store.list_by_user(RecordKind.HABIT, user_id)

    def list_tasks(self, user_id: str) -> list[dict]:
        return self.store.list_by_user(RecordKind.TASK, user_id)

    def add_habit(self, user_id: str, title: str, goal: int) -> dict:
        return self.store.create(
            RecordKind.HABIT, {"userId": user_id, "title": title, "goal": goal}
        )

    def toggle_habit(self, habit: dict, today: str) -> dict:
        # Re-read so the toggle applies to the stored dates, not a stale copy.
        current = self.store.get(RecordKind.HABIT, habit["id"]) or habit
        dates = toggle_date(current.get("completedDates"), today)
        return self.store.update(RecordKind.HABIT, habit["id"], {"completedDates": dates})

    def delete_habit(self, habit_id: str) -> None:
        self.store.delete(RecordKind.HABIT, habit_id)

    def add_task(self, user_id: str, title: str, time: str) -> dict:
        return self.store.create(
            RecordKind.TASK, {"userId": user_id, "title": title, "time": time}
        )

    def toggle_task(self, task: dict) -> dict:
        current = self.store.get(RecordKind.TASK, task["id"]) or task
        return self.store.update(
            RecordKind.TASK, task["id"], {"completed": not current.get("completed")}
        )

    def delete_task(self, task_id: str) -> None:
        self.store.delete(RecordKind.TASK, task_id)


class ClientController:
    """
    Keeps the current user's habits and tasks in sync with a backend.

    `prefs` is a small string mapping persisted by the caller (the user id
    and theme live there). `today` returns the local calendar date.
    """

    def __init__(
        self,
        backend: TrackerBackend,
        prefs: Optional[MutableMapping[str, str]] = None,
        today: Callable[[], date] = date.today,
    ):
        self.backend = backend
        self.prefs = prefs if prefs is not None else {}
        self._today = today
        self.habits: list[dict] = []
        self.tasks: list[dict] = []
        self.last_error: Optional[str] = None

    @property
    def user_id(self) -> str:
        user_id = self.prefs.get(USER_ID_KEY)
        if not user_id:
            user_id = new_user_id()
            self.prefs[USER_ID_KEY] = user_id
            logger.info("Generated user id %s", user_id)
        return user_id

    @property
    def theme(self) -> str:
        return self.prefs.get(THEME_KEY) or "light"

    @theme.setter
    def theme(self, value: str) -> None:
        self.prefs[THEME_KEY] = value

    def toggle_theme(self) -> str:
        self.theme = "light" if self.theme == "dark" else "dark"
        return self.theme

    def today(self) -> str:
        return self._today().isoformat()

    def _fail(self, message: str) -> None:
        self.last_error = message
        logger.warning(message)

    def load(self) -> None:
        self.refresh_habits()
        self.refresh_tasks()

    def refresh_habits(self) -> list[dict]:
        try:
            self.habits = self.backend.list_habits(self.user_id)
        except NetworkFailureError as exc:
            self._fail(f"Could not load habits: {exc}")
            self.habits = []
        return self.habits

    def refresh_tasks(self) -> list[dict]:
        try:
            self.tasks = sort_tasks_by_time(self.backend.list_tasks(self.user_id))
        except NetworkFailureError as exc:
            self._fail(f"Could not load tasks: {exc}")
            self.tasks = []
        return self.tasks

    def _mutate(self, action: Callable[[], Any], refresh: Callable[[], Any]) -> bool:
        ok = True
        try:
            action()
        except (NetworkFailureError, RecordNotFoundError) as exc:
            self._fail(str(exc))
            ok = False
        refresh()
        return ok

    @staticmethod
    def _find(records: list[dict], record_id: str) -> Optional[dict]:
        for record in records:
            if record.get("id") == record_id:
                return record
        return None

    def add_habit(self, title: str, goal: Any) -> bool:
        """Empty titles and non-numeric goals are ignored."""
        title = (title or "").strip()
        if not title:
            return False
        goal = parse_goal(goal)
        if goal is None:
            return False
        user_id = self.user_id
        return self._mutate(
            lambda: self.backend.add_habit(user_id, title, goal), self.refresh_habits
        )

    def add_task(self, title: str, time: str) -> bool:
        title = (title or "").strip()
        if not title or not time:
            return False
        user_id = self.user_id
        return self._mutate(
            lambda: self.backend.add_task(user_id, title, time), self.refresh_tasks
        )

    def toggle_habit(self, habit_id: str) -> bool:
        habit = self._find(self.habits, habit_id)
        if habit is None:
            self._fail(f"Habit {habit_id} is not loaded")
            return False
        today = self.today()
        return self._mutate(
            lambda: self.backend.toggle_habit(habit, today), self.refresh_habits
        )

    def toggle_task(self, task_id: str) -> bool:
        task = self._find(self.tasks, task_id)
        if task is None:
            self._fail(f"Task {task_id} is not loaded")
            return False
        return self._mutate(lambda: self.backend.toggle_task(task), self.refresh_tasks)

    def delete_habit(self, habit_id: str) -> bool:
        return self._mutate(
            lambda: self.backend.delete_habit(habit_id), self.refresh_habits
        )

    def delete_task(self, task_id: str) -> bool:
        return self._mutate(lambda: self.backend.delete_task(task_id), self.refresh_tasks)

    def is_done_today(self, habit: dict) -> bool:
        return self.today() in (habit.get("completedDates") or [])

    def weekly_progress(self, habit: dict) -> int:
        """Completed dates inside the 7-day window ending today."""
        end = self._today()
        start = end - timedelta(days=6)
        count = 0
        for value in set(habit.get("completedDates") or []):
            try:
                day = date.fromisoformat(value)
            except (TypeError, ValueError):
                continue
            if start <= day <= end:
                count += 1
        return count


def open_local_client(path: str, today: Callable[[], date] = date.today) -> ClientController:
    """Controller that keeps records and preferences in one local JSON file."""
    storage = JsonFileMapping(path)
    backend = LocalBackend(KeyValueRecordStore(storage))
    return ClientController(backend, prefs=storage, today=today)


def open_api_client(
    base_url: str, prefs_path: str, today: Callable[[], date] = date.today
) -> ClientController:
    """Controller talking to the HTTP API, with preferences in a local file."""
    return ClientController(ApiBackend(base_url), prefs=JsonFileMapping(prefs_path), today=today)
