"""Alert export: JSON Lines or a single JSON summary document."""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, TextIO

from scanrules.core.models import Alert


def open_text_out(path: Path) -> TextIO:
    if str(path) == "-":
        return sys.stdout
    path.parent.mkdir(parents=True, exist_ok=True)
    return path.open("w", encoding="utf-8")


def write_jsonl(alerts: Iterable[Alert], path: Path) -> int:
    count = 0
    handle = open_text_out(path)
    try:
        for alert in alerts:
            handle.write(json.dumps(alert.to_dict(), sort_keys=True) + "\n")
            count += 1
    finally:
        if handle is not sys.stdout:
            handle.close()
    return count


def summary_document(alerts: Iterable[Alert]) -> dict:
    rows = [a.to_dict() for a in alerts]
    by_risk: dict[str, int] = {}
    for row in rows:
        by_risk[row["risk"]] = by_risk.get(row["risk"], 0) + 1
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "total": len(rows),
        "by_risk": by_risk,
        "alerts": rows,
    }


def write_json(alerts: Iterable[Alert], path: Path) -> int:
    doc = summary_document(alerts)
    handle = open_text_out(path)
    try:
        json.dump(doc, handle, indent=2, sort_keys=True)
        handle.write("\n")
    finally:
        if handle is not sys.stdout:
            handle.close()
    return doc["total"]


def write_alerts(alerts: Iterable[Alert], path: Path) -> int:
    """Pick the format from the file suffix: ``.json`` or JSON Lines otherwise."""
    if Path(path).suffix.lower() == ".json":
        return write_json(alerts, Path(path))
    return write_jsonl(alerts, Path(path))
