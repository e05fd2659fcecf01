"""Block event log.

One JSON object per line in ``blocked-YYYY-MM-DD.log`` (UTC day), plus a short
console line through ``logging``. Summaries read only these files.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path

from .core import Clk, Verdict, now_s, BLOCK, RATE_LIMITED

logger = logging.getLogger(__name__)

EV_BOT = "bot"
EV_RATE = "rate_limit"


def day_of(ts: float) -> str:
    return datetime.fromtimestamp(ts, timezone.utc).strftime("%Y-%m-%d")


def log_file(d: Path, day: str) -> Path:
    return d / f"blocked-{day}.log"


class EvLog:
    """Appends block events; never raises on I/O errors."""

    def __init__(self, d: Path | None, clk: Clk = now_s) -> None:
        """Create logger.

        Args:
            d: Log directory; None disables file output.
            clk: Clock returning epoch seconds.
        """
        self.d = d
        self.clk = clk
        self._lk = threading.Lock()

    def emit(self, typ: str, ip: str, ua: str, reason: str, path: str) -> None:
        """Record one event.

        Args:
            typ: Event type ("bot" or "rate_limit").
            ip: Client identity.
            ua: User agent.
            reason: Block reason.
            path: Request path.
        """
        ts = self.clk()
        logger.info("[%s] %s - %s - %s", typ.upper(), ip, reason, ua[:80])
        if self.d is None:
            return
        row = {
            "timestamp": datetime.fromtimestamp(ts, timezone.utc).isoformat(),
            "type": typ,
            "ip": ip,
            "userAgent": ua,
            "reason": reason,
            "path": path,
        }
        p = log_file(self.d, day_of(ts))
        try:
            with self._lk:
                self.d.mkdir(parents=True, exist_ok=True)
                with p.open("a", encoding="utf-8") as f:
                    f.write(json.dumps(row, ensure_ascii=False) + "\n")
        except OSError as e:
            logger.error("failed to write event log %s: %s", p, e)

    def verdict(self, v: Verdict, ip: str, ua: str, path: str) -> None:
        """Record a verdict if it is not an allow."""
        if v.kind == BLOCK:
            self.emit(EV_BOT, ip, ua, v.text, path)
        elif v.kind == RATE_LIMITED:
            self.emit(EV_RATE, ip, ua, v.text, path)
        else:
            logger.debug("[ALLOW] %s %s", ip, path)
