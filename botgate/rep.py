"""Reporting utilities."""

from __future__ import annotations

import csv
import json
import logging
from collections import Counter
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, Mapping, Any

from .core import BgErr
from .evlog import log_file

logger = logging.getLogger(__name__)


class OutErr(BgErr):
    """Raised when report cannot be written."""


def wr_jsonl(p: Path, rows: Iterable[Mapping[str, Any]]) -> None:
    """Write rows as JSON Lines.

    Args:
        p: Output path.
        rows: Iterable of dict-like rows.

    Raises:
        OutErr: On write errors.
    """
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        with p.open("w", encoding="utf-8") as f:
            for r in rows:
                f.write(json.dumps(dict(r), ensure_ascii=False) + "\n")
    except OSError as e:
        raise OutErr(f"cannot write: {p}") from e


def wr_csv(p: Path, rows: Iterable[Mapping[str, Any]]) -> None:
    """Write rows as CSV (header from the first row).

    Args:
        p: Output path.
        rows: Iterable of dict-like rows.

    Raises:
        OutErr: On write errors.
    """
    rows = list(rows)
    if not rows:
        return
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        with p.open("w", encoding="utf-8", newline="") as f:
            w = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
            w.writeheader()
            w.writerows(rows)
    except OSError as e:
        raise OutErr(f"cannot write: {p}") from e


def tally(lines: Iterable[str]) -> dict[str, Any]:
    """Count block events by type, reason and ip.

    Malformed lines are skipped.
    """
    n = 0
    by_t: Counter[str] = Counter()
    by_r: Counter[str] = Counter()
    by_ip: Counter[str] = Counter()
    for ln in lines:
        if not ln.strip():
            continue
        try:
            e = json.loads(ln)
        except json.JSONDecodeError:
            continue
        if not isinstance(e, dict):
            continue
        n += 1
        by_t[str(e.get("type", ""))] += 1
        by_r[str(e.get("reason", ""))] += 1
        by_ip[str(e.get("ip", ""))] += 1
    return {"total": n, "by_type": by_t, "by_reason": by_r, "top_ips": by_ip.most_common(10)}


def fmt_sum(day: str, st: Mapping[str, Any]) -> str:
    out = [
        f"Daily Block Summary: {day}",
        "================================",
        "",
        f"Total Blocked Requests: {st['total']}",
        "",
        "By Type:",
    ]
    out += [f"  {k}: {v}" for k, v in st["by_type"].items()]
    out += ["", "By Reason:"]
    out += [f"  {k}: {v}" for k, v in st["by_reason"].items()]
    out += ["", "Top 10 Blocked IPs:"]
    out += [f"  {ip}: {v}" for ip, v in st["top_ips"]]
    return "\n".join(out) + "\n"


def sum_day(d: Path, day: str) -> Path | None:
    """Write ``summary-<day>.txt`` from that day's block log.

    Args:
        d: Log directory.
        day: Day as YYYY-MM-DD.

    Returns:
        Summary path, or None if there was no log for the day.

    Raises:
        OutErr: If the log cannot be read or the summary cannot be written.
    """
    lf = log_file(d, day)
    if not lf.exists():
        logger.info("[SUMMARY] no log file for %s", day)
        return None
    try:
        with lf.open("r", encoding="utf-8", errors="replace") as f:
            st = tally(f)
    except OSError as e:
        raise OutErr(f"cannot read: {lf}") from e
    sp = d / f"summary-{day}.txt"
    try:
        sp.write_text(fmt_sum(day, st), encoding="utf-8")
    except OSError as e:
        raise OutErr(f"cannot write: {sp}") from e
    logger.info("[SUMMARY] generated for %s: %d blocks", day, st["total"])
    return sp


def secs_to_next(now: datetime, hh: int = 0, mm: int = 5) -> float:
    """Seconds from now until the next hh:mm (same timezone as now)."""
    t = now.replace(hour=hh, minute=mm, second=0, microsecond=0)
    if t <= now:
        t += timedelta(days=1)
    return (t - now).total_seconds()
