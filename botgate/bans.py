"""Durable ban store.

Bans live in memory and are mirrored to one JSON file which is rewritten in
full on every change:

    {"1.2.3.4": {"bannedAt": "2025-12-17T10:00:01+00:00",
                 "reason": "...", "locales": ["de", "en"]}}

Storage failures never take the gate down. A failed load starts with an empty
ban list, a failed save leaves memory authoritative until the next successful
save.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from .core import Clk, StoreErr, now_s

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BanRec:
    """Ban record.

    Args:
        banned_at: Epoch seconds when the ban was issued.
        reason: Human-readable reason.
        locales: Locales involved (locale scraping bans).
    """

    banned_at: float
    reason: str
    locales: frozenset[str] = field(default_factory=frozenset)

    def asd(self) -> dict[str, Any]:
        return {
            "bannedAt": datetime.fromtimestamp(self.banned_at, timezone.utc).isoformat(),
            "reason": self.reason,
            "locales": sorted(self.locales),
        }


def _ts(s: str) -> float:
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    d = datetime.fromisoformat(s)
    if d.tzinfo is None:
        d = d.replace(tzinfo=timezone.utc)
    return d.timestamp()


def prs_rec(x: Any) -> BanRec:
    """Parse one persisted record.

    Raises:
        StoreErr: If the record is malformed.
    """
    if not isinstance(x, dict):
        raise StoreErr("record must be object")
    try:
        ts = _ts(str(x["bannedAt"]))
    except KeyError as e:
        raise StoreErr("missing bannedAt") from e
    except ValueError as e:
        raise StoreErr(f"bad bannedAt: {x.get('bannedAt')!r}") from e
    locs = x.get("locales", [])
    if not isinstance(locs, list):
        raise StoreErr("locales must be a list")
    return BanRec(banned_at=ts, reason=str(x.get("reason", "")), locales=frozenset(map(str, locs)))


class BanStore:
    """Identity -> BanRec map with expiry and atomic persistence.

    The store is the only owner of ban records; every mutation is followed by
    a full save.
    """

    def __init__(self, p: Path | None, dur: float, clk: Clk = now_s) -> None:
        """Create store.

        Args:
            p: Path to ban file; None keeps bans in memory only.
            dur: Ban duration in seconds.
            clk: Clock returning epoch seconds.
        """
        self.p = p
        self.dur = float(dur)
        self.clk = clk
        self._m: dict[str, BanRec] = {}
        self._lk = threading.RLock()

    def __len__(self) -> int:
        return len(self._m)

    def _live(self, r: BanRec, now: float) -> bool:
        return now - r.banned_at < self.dur

    def lookup(self, ip: str) -> BanRec | None:
        """Return the active ban for ip, evicting it if expired."""
        with self._lk:
            r = self._m.get(ip)
            if r is None:
                return None
            if self._live(r, self.clk()):
                return r
            del self._m[ip]
            logger.info("ban expired: %s (%s)", ip, r.reason)
            self.save()
            return None

    def is_banned(self, ip: str) -> bool:
        return self.lookup(ip) is not None

    def ban(self, ip: str, reason: str, locales: Iterable[str] = ()) -> BanRec:
        """Insert or overwrite a ban and persist before returning."""
        r = BanRec(banned_at=self.clk(), reason=reason, locales=frozenset(locales))
        with self._lk:
            self._m[ip] = r
            self.save()
        logger.warning("banned %s: %s", ip, reason)
        return r

    def items(self) -> dict[str, BanRec]:
        """Snapshot of active bans (no eviction)."""
        now = self.clk()
        with self._lk:
            return {k: v for k, v in self._m.items() if self._live(v, now)}

    def load(self) -> int:
        """Replace memory with the durable state.

        Returns:
            Number of active bans loaded.
        """
        m: dict[str, BanRec] = {}
        if self.p is not None:
            try:
                m = self._rd(self.p)
            except StoreErr as e:
                logger.error("cannot load bans, starting with none: %s", e)
                m = {}
        now = self.clk()
        with self._lk:
            self._m = {k: v for k, v in m.items() if self._live(v, now)}
            n = len(self._m)
        if len(m) != n:
            logger.info("dropped %d expired bans on load", len(m) - n)
        logger.info("loaded %d bans from %s", n, self.p)
        return n

    def _rd(self, p: Path) -> dict[str, BanRec]:
        if not p.exists():
            return {}
        try:
            d = json.loads(p.read_text(encoding="utf-8"))
        except OSError as e:
            raise StoreErr(f"cannot read: {p}") from e
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StoreErr(f"ban file must be JSON: {p}") from e
        if not isinstance(d, dict):
            raise StoreErr("ban file root must be object")
        m: dict[str, BanRec] = {}
        for k, x in d.items():
            try:
                m[str(k)] = prs_rec(x)
            except StoreErr as e:
                logger.warning("skipping ban record %r: %s", k, e)
        return m

    def save(self) -> bool:
        """Write the whole map atomically.

        Returns:
            True on success (or memory-only store), False if the write failed.
        """
        if self.p is None:
            return True
        with self._lk:
            d = {k: v.asd() for k, v in self._m.items()}
            try:
                self._wr(self.p, d)
            except StoreErr as e:
                logger.error("cannot save bans, keeping them in memory: %s", e)
                return False
        return True

    def _wr(self, p: Path, d: dict[str, Any]) -> None:
        tmp = ""
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=f".{p.name}.", suffix=".tmp", dir=str(p.parent))
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(json.dumps(d, ensure_ascii=False, indent=2) + "\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, p)
        except OSError as e:
            if tmp:
                with contextlib.suppress(OSError):
                    os.unlink(tmp)
            raise StoreErr(f"cannot write: {p}") from e
