from __future__ import annotations

import csv
import io
import json
import logging
import re
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from . import config

PACKAGE_LOGGER = "function_visualizer"

_SESSION_LOG_STATE: Dict[str, Dict[str, Any]] = {}
_UNSAFE_SESSION_CHARS = re.compile(r"[^0-9a-f]")

log = logging.getLogger(__name__)


def setup_logging(level: Union[int, str] = config.LOG_LEVEL, log_file: Optional[str] = None) -> None:
    """
    Configures the 'function_visualizer' logger.

    Args:
        level: Logging level (e.g. logging.DEBUG or "DEBUG")
        log_file: Optional path to also write logs to.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    # Avoid duplicate handlers when the Dash dev server reloads
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.info("Logging initialized.")


def next_seq_and_elapsed(session_id: str) -> Dict[str, Any]:
    state = _SESSION_LOG_STATE.setdefault(session_id, {"seq": 0, "last_t_server_ms": None})
    now_ms = int(time.time() * 1000)
    seq = state["seq"] + 1
    state["seq"] = seq
    elapsed = 0
    if state["last_t_server_ms"] is not None:
        elapsed = max(now_ms - state["last_t_server_ms"], 0)
    state["last_t_server_ms"] = now_ms
    ts = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return {"seq": seq, "elapsed_time_ms": elapsed, "t_server_iso": ts}


def safe_session_id(session_id: Optional[str]) -> str:
    """Session ids are uuid4 hex; anything else is stripped to its hex digits."""
    cleaned = _UNSAFE_SESSION_CHARS.sub("", session_id) if isinstance(session_id, str) else ""
    return cleaned or "unknown"


def session_log_path(session_id: str, data_dir: Optional[Path] = None) -> Path:
    return (data_dir or config.DATA_DIR) / f"session_{safe_session_id(session_id)}.jsonl"


def append_jsonl(path: Path, record: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as fh:
        fh.write(json.dumps(record, ensure_ascii=False) + "\n")
        fh.flush()


def read_jsonl(path: Path) -> List[Dict[str, Any]]:
    if not path.exists():
        return []
    records: List[Dict[str, Any]] = []
    with path.open("r", encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if not line:
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError:
                continue
    return records


def event_record(
    session_id: str,
    *,
    event: str,
    mode: Optional[str] = None,
    expression: Optional[str] = None,
    resolution: Optional[int] = None,
    source: str = "system",
    detail: Optional[str] = None,
) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "schema_version": config.SCHEMA_VERSION,
        "session_id": session_id,
        "event": event,
        "source": source,
        "mode": mode,
        "expression": expression,
        "resolution": resolution,
        "detail": detail,
        "app_mode": config.APP_MODE,
    }
    record.update(next_seq_and_elapsed(session_id))
    return record


def log_event(session_id: str, record: Dict[str, Any], *, data_dir: Optional[Path] = None) -> bool:
    """Append ``record`` to the session trail. Write failures are logged, not raised."""
    if data_dir is None and not config.EVENT_LOG_ENABLED:
        return False
    try:
        append_jsonl(session_log_path(session_id, data_dir), record)
    except OSError as exc:
        log.warning("Could not write event for session %s: %s", session_id, exc)
        return False
    return True


def flatten_record_for_csv(record: Dict[str, Any]) -> Dict[str, Any]:
    flat = dict.fromkeys(config.SCHEMA_COLUMNS, None)
    for key, value in record.items():
        if key in flat:
            flat[key] = value
    return flat


def build_csv_content(records: List[Dict[str, Any]]) -> Optional[str]:
    if not records:
        return None
    columns = list(config.SCHEMA_COLUMNS)
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=columns, extrasaction="ignore")
    writer.writeheader()
    for record in records:
        writer.writerow(flatten_record_for_csv(record))
    return buffer.getvalue()
