"""Locale scraping detector.

Humans pick one locale. A client requesting many distinct locale-prefixed
paths repeatedly within a short window is walking the site like an exhaustive
content scraper.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from .core import Clk, now_s

LOCALES: frozenset[str] = frozenset(
    (
        "ar bg bn ca cs da de el en es et fa fi fr he hi hr hu id it ja ko "
        "lt lv ms nb nl no pl pt ro ru sk sl sr sv th tr uk vi zh"
    ).split()
)


def loc_of(path: str) -> str | None:
    """Extract the locale tag from the leading path segment.

    Args:
        path: Request path, optionally with query string.

    Returns:
        Lower-cased locale, or None when the first segment is not a
        recognized 2-letter locale.
    """
    p = (path or "").split("?", 1)[0].split("#", 1)[0]
    seg = p.lstrip("/").split("/", 1)[0].lower()
    if len(seg) == 2 and seg in LOCALES:
        return seg
    return None


@dataclass(frozen=True)
class Trig:
    """Ban trigger.

    Args:
        reason: Human-readable reason.
        locales: Locales that reached the hit threshold.
    """

    reason: str
    locales: frozenset[str]


@dataclass
class LocRec:
    ws: float
    cnt: dict[str, int] = field(default_factory=dict)


class LocDet:
    """Per-identity locale counters over a fixed window."""

    def __init__(self, thr: int, min_hits: int, win: float, clk: Clk = now_s) -> None:
        """Create detector.

        Args:
            thr: Number of qualifying locales that triggers a ban.
            min_hits: Hits a locale needs to qualify.
            win: Window length in seconds.
            clk: Clock returning epoch seconds.
        """
        self.thr = int(thr)
        self.min_hits = int(min_hits)
        self.win = float(win)
        self.clk = clk
        self._m: dict[str, LocRec] = {}
        self._lk = threading.Lock()

    def __len__(self) -> int:
        return len(self._m)

    def observe(self, ip: str, path: str) -> Trig | None:
        """Count a request and report a scraping trigger.

        Args:
            ip: Client identity.
            path: Request path.

        Returns:
            Trig once enough locales qualify, else None. A trigger clears the
            identity's counters.
        """
        lc = loc_of(path)
        if lc is None:
            return None
        now = self.clk()
        with self._lk:
            r = self._m.get(ip)
            if r is None or now - r.ws > self.win:
                r = LocRec(ws=now)
                self._m[ip] = r
            r.cnt[lc] = r.cnt.get(lc, 0) + 1
            q = [(k, v) for k, v in r.cnt.items() if v >= self.min_hits]
            if len(q) < self.thr:
                return None
            del self._m[ip]
        q.sort(key=lambda kv: (-kv[1], kv[0]))
        lst = ", ".join(f"{k}({v})" for k, v in q)
        return Trig(
            reason=f"Locale scraping: {lst} in {int(now - r.ws)}s",
            locales=frozenset(k for k, _ in q),
        )

    def purge(self, now: float | None = None) -> int:
        """Drop identities whose window started more than 2*win ago."""
        t = self.clk() if now is None else now
        cut = 2 * self.win
        with self._lk:
            old = [k for k, r in self._m.items() if t - r.ws > cut]
            for k in old:
                del self._m[k]
        return len(old)
