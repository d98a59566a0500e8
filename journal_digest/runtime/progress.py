"""In-memory progress tracking for digest runs, streamed to clients as SSE."""

import asyncio
import json
import time
from copy import deepcopy
from typing import Any, Callable

STAGE_META = [
    ("summarize_entries", "Entry summaries"),
    ("merge", "Merge and deduplicate"),
    ("salience", "Salience filtering"),
    ("group_overviews", "Group summaries"),
    ("overview", "Overview narrative"),
]

TERMINAL_EVENTS = {"run_completed", "run_failed"}

_RUNS: dict[str, dict[str, Any]] = {}
_SUBSCRIBERS: dict[str, set[asyncio.Queue]] = {}
_LOCK = asyncio.Lock()


def _terminal_status(status: str) -> bool:
    return status in {"done", "skipped", "error"}


def _find_stage(run: dict[str, Any], stage_key: str) -> dict[str, Any] | None:
    return next((s for s in run["stages"] if s["key"] == stage_key), None)


async def _broadcast(run_id: str, event: str, data: dict[str, Any]) -> None:
    async with _LOCK:
        queues = list(_SUBSCRIBERS.get(run_id, set()))
    packet = {"event": event, "data": data}
    for q in queues:
        q.put_nowait(packet)


async def _update_stage(
    run_id: str,
    stage_key: str,
    mutate: Callable[[dict[str, Any], float], None],
) -> None:
    """Apply ``mutate(stage, now)`` under the lock and broadcast the new state."""
    payload = None
    async with _LOCK:
        run = _RUNS.get(run_id)
        stage = _find_stage(run, stage_key) if run else None
        if stage is None:
            return
        now = time.time()
        mutate(stage, now)
        run["updated_at"] = now
        payload = {
            "run_id": run_id,
            "stage": deepcopy(stage),
            "stages": deepcopy(run["stages"]),
            "updated_at": now,
        }
    await _broadcast(run_id, "stage_update", payload)


async def begin_run(run_id: str, entry_count: int = 0) -> None:
    now = time.time()
    stages = [
        {
            "key": key,
            "label": label,
            "status": "pending",
            "content": "",
            "started_at": None,
            "ended_at": None,
            "substeps": [],
            "current_substep": "",
        }
        for key, label in STAGE_META
    ]
    async with _LOCK:
        _RUNS[run_id] = {
            "run_id": run_id,
            "entry_count": entry_count,
            "done": False,
            "error": "",
            "response": None,
            "stages": stages,
            "created_at": now,
            "updated_at": now,
        }
        payload = deepcopy(_RUNS[run_id])
    await _broadcast(run_id, "run_started", payload)


async def mark_stage(run_id: str, stage_key: str, status: str, content: str = "") -> None:
    def mutate(stage: dict[str, Any], now: float) -> None:
        stage["status"] = status
        if status == "running" and not stage["started_at"]:
            stage["started_at"] = now
        if _terminal_status(status):
            stage["ended_at"] = now
            stage["current_substep"] = ""
        if content:
            stage["content"] = content

    await _update_stage(run_id, stage_key, mutate)


async def mark_substep(
    run_id: str,
    stage_key: str,
    substep_id: str,
    status: str,
    label: str = "",
    detail: str = "",
) -> None:
    def mutate(stage: dict[str, Any], now: float) -> None:
        substep = next((s for s in stage["substeps"] if s["id"] == substep_id), None)
        if substep is None:
            substep = {
                "id": substep_id,
                "label": label or substep_id,
                "status": "pending",
                "detail": "",
                "started_at": None,
                "ended_at": None,
            }
            stage["substeps"].append(substep)
        if label:
            substep["label"] = label
        substep["status"] = status
        if status == "running" and not substep["started_at"]:
            substep["started_at"] = now
            stage["current_substep"] = substep_id
        if _terminal_status(status):
            substep["ended_at"] = now
            if stage["current_substep"] == substep_id:
                stage["current_substep"] = ""
        if detail:
            substep["detail"] = detail

    await _update_stage(run_id, stage_key, mutate)


async def _finish_run(run_id: str, event: str, **fields: Any) -> None:
    async with _LOCK:
        run = _RUNS.get(run_id)
        if not run:
            return
        run.update(fields)
        run["done"] = True
        run["updated_at"] = time.time()
        payload = deepcopy(run)
    await _broadcast(run_id, event, payload)


async def complete_run(run_id: str, response: dict[str, Any]) -> None:
    await _finish_run(run_id, "run_completed", response=response)


async def fail_run(run_id: str, error: str) -> None:
    await _finish_run(run_id, "run_failed", error=error)


async def get_run(run_id: str) -> dict[str, Any] | None:
    async with _LOCK:
        run = _RUNS.get(run_id)
        return deepcopy(run) if run else None


async def subscribe(run_id: str) -> asyncio.Queue:
    queue: asyncio.Queue = asyncio.Queue()
    async with _LOCK:
        _SUBSCRIBERS.setdefault(run_id, set()).add(queue)
    return queue


async def unsubscribe(run_id: str, queue: asyncio.Queue) -> None:
    async with _LOCK:
        queues = _SUBSCRIBERS.get(run_id)
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            _SUBSCRIBERS.pop(run_id, None)


async def next_event(queue: asyncio.Queue, timeout: float = 15.0) -> dict[str, Any] | None:
    try:
        return await asyncio.wait_for(queue.get(), timeout=timeout)
    except asyncio.TimeoutError:
        return None


def to_sse(event: str, data: dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False, default=str)}\n\n"


async def skip_remaining_after(run_id: str, stage_key: str) -> None:
    payload = None
    async with _LOCK:
        run = _RUNS.get(run_id)
        if not run:
            return
        hit = False
        now = time.time()
        for stage in run["stages"]:
            if stage["key"] == stage_key:
                hit = True
                continue
            if hit and stage["status"] == "pending":
                stage["status"] = "skipped"
                stage["ended_at"] = now
        run["updated_at"] = now
        payload = {
            "run_id": run_id,
            "stages": deepcopy(run["stages"]),
            "updated_at": now,
        }
    await _broadcast(run_id, "stage_update", payload)
