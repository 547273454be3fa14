import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

import requests

from .dates import format_iso_datetime
from .errors import SyncTransportError, ValidationError
from .merge import CompletionMap, Snapshot, plan_sync, update_payload
from .models import Completion, Habit, completion_map_to_dict, parse_completion_map

logger = logging.getLogger(__name__)


class RemoteStore:
    """Peer copy of the habits and completions of the authenticated user.

    Every method raises :class:`SyncTransportError` when the peer cannot be
    reached or rejects the call.
    """

    def fetch_snapshot(self) -> Snapshot:
        raise NotImplementedError

    def create_habit(self, habit: Habit) -> None:
        raise NotImplementedError

    def update_habit(self, habit_id: str, fields: Dict[str, Any]) -> None:
        raise NotImplementedError

    def add_completion(self, habit: Habit, day_key: str, completed_at: datetime) -> None:
        raise NotImplementedError

    def bulk_sync(self, habits: Iterable[Habit], completions: CompletionMap) -> Snapshot:
        raise NotImplementedError


def _parse_habit(record: Any) -> Optional[Habit]:
    try:
        return Habit.from_dict(record)
    except ValidationError as exc:
        logger.warning("Skipping remote habit: %s", exc)
        return None


def _parse_habit_records(records: Any) -> Snapshot:
    if isinstance(records, dict):
        records = records.get("habits")
    if not isinstance(records, list):
        raise SyncTransportError("Remote habit list has an unexpected shape.")
    habits: List[Habit] = []
    raw_completions: Dict[str, List[Dict[str, Any]]] = {}
    for record in records:
        habit = _parse_habit(record)
        if habit is None:
            continue
        habits.append(habit)
        for entry in record.get("completions") or []:
            if not isinstance(entry, dict):
                continue
            key = entry.get("dayKey") or entry.get("date")
            if not isinstance(key, str):
                continue
            raw_completions.setdefault(key, []).append(dict(entry, habitId=habit.id))
    return Snapshot(habits, parse_completion_map(raw_completions))


class HttpRemoteStore(RemoteStore):
    def __init__(
        self,
        base_url: str,
        token: str,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        })

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            logger.error("Remote request %s %s failed: %s", method, url, exc)
            raise SyncTransportError(f"{method} {url} failed: {exc}") from exc
        try:
            body = response.json()
        except ValueError:
            body = None
        if not response.ok:
            message = body.get("error") if isinstance(body, dict) else None
            raise SyncTransportError(f"{method} {url} returned HTTP {response.status_code}: {message or 'no details'}")
        return body

    def fetch_snapshot(self) -> Snapshot:
        return _parse_habit_records(self._request("GET", "habits"))

    def create_habit(self, habit: Habit) -> None:
        self._request("POST", "habits", habit.to_dict())

    def update_habit(self, habit_id: str, fields: Dict[str, Any]) -> None:
        self._request("PUT", f"habits/{habit_id}", fields)

    def _post_sync(self, habits: Iterable[Habit], completions: CompletionMap) -> Any:
        return self._request("POST", "habits/sync", {
            "habits": [habit.to_dict() for habit in habits],
            "completions": completion_map_to_dict(completions),
        })

    def add_completion(self, habit: Habit, day_key: str, completed_at: datetime) -> None:
        # habits/sync only adds; it ignores completions whose habit is not in the request
        self._post_sync([habit], {day_key: [Completion(habit.id, completed_at)]})

    def bulk_sync(self, habits: Iterable[Habit], completions: CompletionMap) -> Snapshot:
        body = self._post_sync(habits, completions)
        if not isinstance(body, dict):
            raise SyncTransportError("Remote sync response has an unexpected shape.")
        habits = [habit for habit in map(_parse_habit, body.get("habits") or []) if habit is not None]
        return Snapshot(habits, parse_completion_map(body.get("completions") or {}))


# JSON key -> column
_HABIT_COLUMNS = {
    "name": "name",
    "description": "description",
    "targetDays": "target_days",
    "tags": "tags",
    "archived": "archived",
    "notificationEnabled": "notification_enabled",
    "notificationTime": "notification_time",
    "updatedAt": "updated_at",
}
_JSON_COLUMNS = {"target_days", "tags"}


def _ensure_tables(cursor) -> None:
    cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS trackit_habits (
            profile TEXT NOT NULL,
            id TEXT NOT NULL,
            name TEXT NOT NULL,
            description TEXT,
            target_days JSONB,
            tags JSONB,
            archived BOOLEAN,
            notification_enabled BOOLEAN,
            notification_time TEXT,
            created_at TEXT,
            updated_at TEXT,
            PRIMARY KEY (profile, id)
        )
        """
    )
    cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS trackit_completions (
            profile TEXT NOT NULL,
            habit_id TEXT NOT NULL,
            day_key TEXT NOT NULL,
            completed_at TEXT,
            PRIMARY KEY (profile, habit_id, day_key)
        )
        """
    )


def _json_value(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        logger.warning("Ignoring malformed JSON column value %r", value)
        return None


class PostgresRemoteStore(RemoteStore):
    """Remote copy kept directly in Postgres, scoped by profile."""

    def __init__(self, db_url: str, profile: str):
        self.db_url = db_url
        self.profile = profile

    def _transaction(self, work: Callable[[Any], Any]) -> Any:
        try:
            import psycopg
        except ImportError as exc:
            raise SyncTransportError(
                "Database sync needs psycopg installed (pip install 'psycopg[binary]')."
            ) from exc
        try:
            conn = psycopg.connect(self.db_url)
        except psycopg.Error as exc:
            logger.error("Cannot connect to the sync database: %s", exc)
            raise SyncTransportError(f"Cannot connect to the sync database: {exc}") from exc
        try:
            with conn:
                with conn.cursor() as cursor:
                    _ensure_tables(cursor)
                    return work(cursor)
        except psycopg.Error as exc:
            logger.error("Sync database call failed: %s", exc)
            raise SyncTransportError(f"Sync database call failed: {exc}") from exc
        finally:
            conn.close()

    def _read_snapshot(self, cursor) -> Snapshot:
        cursor.execute(
            """
            SELECT id, name, description, target_days, tags, archived,
                   notification_enabled, notification_time, created_at, updated_at
            FROM trackit_habits
            WHERE profile = %s
            ORDER BY created_at, id
            """,
            (self.profile,),
        )
        habits: List[Habit] = []
        for row in cursor.fetchall():
            try:
                habits.append(Habit.from_dict({
                    "id": row[0],
                    "name": row[1],
                    "description": row[2],
                    "targetDays": _json_value(row[3]) or [],
                    "tags": _json_value(row[4]) or [],
                    "archived": row[5],
                    "notificationEnabled": row[6],
                    "notificationTime": row[7],
                    "createdAt": row[8],
                    "updatedAt": row[9],
                }))
            except ValidationError as exc:
                logger.warning("Skipping database habit: %s", exc)
        cursor.execute(
            """
            SELECT habit_id, day_key, completed_at
            FROM trackit_completions
            WHERE profile = %s
            ORDER BY day_key, habit_id
            """,
            (self.profile,),
        )
        raw: Dict[str, List[Dict[str, Any]]] = {}
        for habit_id, day_key, completed_at in cursor.fetchall():
            raw.setdefault(day_key, []).append({"habitId": habit_id, "completedAt": completed_at})
        return Snapshot(habits, parse_completion_map(raw))

    def _insert_habit(self, cursor, habit: Habit) -> None:
        payload = habit.to_dict()
        cursor.execute(
            """
            INSERT INTO trackit_habits
                (profile, id, name, description, target_days, tags, archived,
                 notification_enabled, notification_time, created_at, updated_at)
            VALUES (%(profile)s, %(id)s, %(name)s, %(description)s, %(target_days)s::jsonb,
                    %(tags)s::jsonb, %(archived)s, %(notification_enabled)s,
                    %(notification_time)s, %(created_at)s, %(updated_at)s)
            ON CONFLICT (profile, id) DO NOTHING
            """,
            {
                "profile": self.profile,
                "id": payload["id"],
                "name": payload["name"],
                "description": payload["description"],
                "target_days": json.dumps(payload["targetDays"]),
                "tags": json.dumps(payload["tags"]),
                "archived": payload["archived"],
                "notification_enabled": payload["notificationEnabled"],
                "notification_time": payload["notificationTime"],
                "created_at": payload["createdAt"],
                "updated_at": payload["updatedAt"],
            },
        )

    def _update_habit(self, cursor, habit_id: str, fields: Dict[str, Any]) -> None:
        assignments = []
        params: Dict[str, Any] = {"profile": self.profile, "id": habit_id}
        for key, value in fields.items():
            column = _HABIT_COLUMNS.get(key)
            if column is None:
                continue
            if column in _JSON_COLUMNS:
                assignments.append(f"{column} = %({column})s::jsonb")
                params[column] = json.dumps(value)
            else:
                assignments.append(f"{column} = %({column})s")
                params[column] = value
        if not assignments:
            return
        cursor.execute(
            f"UPDATE trackit_habits SET {', '.join(assignments)} "
            "WHERE profile = %(profile)s AND id = %(id)s",
            params,
        )

    def _insert_completion(self, cursor, habit_id: str, day_key: str, completed_at: datetime) -> None:
        cursor.execute(
            """
            INSERT INTO trackit_completions (profile, habit_id, day_key, completed_at)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (profile, habit_id, day_key) DO NOTHING
            """,
            (self.profile, habit_id, day_key, format_iso_datetime(completed_at)),
        )

    def fetch_snapshot(self) -> Snapshot:
        return self._transaction(self._read_snapshot)

    def create_habit(self, habit: Habit) -> None:
        self._transaction(lambda cursor: self._insert_habit(cursor, habit))

    def update_habit(self, habit_id: str, fields: Dict[str, Any]) -> None:
        self._transaction(lambda cursor: self._update_habit(cursor, habit_id, fields))

    def add_completion(self, habit: Habit, day_key: str, completed_at: datetime) -> None:
        self._transaction(lambda cursor: self._insert_completion(cursor, habit.id, day_key, completed_at))

    def bulk_sync(self, habits: Iterable[Habit], completions: CompletionMap) -> Snapshot:
        habits = list(habits)

        def work(cursor) -> Snapshot:
            plan = plan_sync(self._read_snapshot(cursor), habits, completions)
            for habit in plan.creates:
                self._insert_habit(cursor, habit)
            for habit in plan.updates:
                self._update_habit(cursor, habit.id, update_payload(habit))
            for key, entry in plan.completions:
                self._insert_completion(cursor, entry.habit_id, key, entry.completed_at)
            return self._read_snapshot(cursor)

        return self._transaction(work)
