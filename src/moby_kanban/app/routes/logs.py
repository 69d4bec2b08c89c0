from __future__ import annotations

import json
from collections import Counter
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, HTTPException, Request

from moby_kanban.observability.logging import log_path

router = APIRouter(prefix="/api/logs", tags=["logs"])

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _tail_lines(path: Path, n: int) -> list[str]:
    text = path.read_text(encoding="utf-8", errors="replace")
    lines = text.splitlines()
    return lines[-n:] if n > 0 else lines


def _parse(lines: list[str]) -> list[dict]:
    items = []
    for line in lines:
        try:
            items.append(json.loads(line))
        except json.JSONDecodeError:
            continue
    return items


def matches(
    obj: dict,
    category: Optional[str] = None,
    level: Optional[str] = None,
    request_id: Optional[str] = None,
    q: Optional[str] = None,
) -> bool:
    if category and obj.get("category") != category:
        return False
    if level and str(obj.get("level", "")).upper() != level.upper():
        return False
    if request_id and obj.get("request_id") != request_id:
        return False
    if q and q.lower() not in json.dumps(obj).lower():
        return False
    return True


@router.get("")
def get_logs(
    request: Request,
    tail: int = 300,
    category: Optional[str] = None,
    level: Optional[str] = None,
    request_id: Optional[str] = None,
    q: Optional[str] = None,
    stats: bool = False,
):
    path = log_path(request.app.state.settings)
    if not path.exists():
        raise HTTPException(status_code=404, detail=f"Log file not found: {path}")

    tail = max(1, min(tail, 5000))
    items = _parse(_tail_lines(path, tail))

    if stats:
        by_level = Counter(str(obj.get("level", "")).upper() for obj in items)
        return {
            "total": len(items),
            "byLevel": {lvl: by_level.get(lvl, 0) for lvl in LEVELS},
        }

    items = [obj for obj in items if matches(obj, category, level, request_id, q)]
    return {"returned": len(items), "tail": tail, "items": items}
