"""Fixed-window rate limiting per identity."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass

from .core import Clk, now_s


@dataclass
class RtRec:
    """Counter for one identity.

    Args:
        n: Requests seen in the current window.
        ws: Window start (epoch seconds).
    """

    n: int
    ws: float


class RtLim:
    """Fixed-window limiter.

    A window starts with the first request of an identity. The first request
    of a window is never limited; later ones are limited once the count
    exceeds lim. Bursts of up to 2*lim across a window edge are accepted.
    """

    def __init__(self, lim: int, win: float, clk: Clk = now_s) -> None:
        self.lim = int(lim)
        self.win = float(win)
        self.clk = clk
        self._m: dict[str, RtRec] = {}
        self._lk = threading.Lock()

    def __len__(self) -> int:
        return len(self._m)

    def hit(self, ip: str) -> bool:
        """Count one request.

        Args:
            ip: Client identity.

        Returns:
            True if the identity is over the limit.
        """
        now = self.clk()
        with self._lk:
            r = self._m.get(ip)
            if r is None:
                self._m[ip] = RtRec(1, now)
                return False
            if now - r.ws > self.win:
                r.n = 1
                r.ws = now
                return False
            r.n += 1
            return r.n > self.lim

    def retry_in(self, ip: str) -> int:
        """Seconds until the identity's window rolls over (at least 1)."""
        now = self.clk()
        with self._lk:
            r = self._m.get(ip)
            if r is None:
                return 1
            return max(1, math.ceil(r.ws + self.win - now))

    def purge(self, now: float | None = None) -> int:
        """Drop identities whose window started more than 2*win ago.

        Returns:
            Number of purged identities.
        """
        t = self.clk() if now is None else now
        cut = 2 * self.win
        with self._lk:
            old = [k for k, r in self._m.items() if t - r.ws > cut]
            for k in old:
                del self._m[k]
        return len(old)
