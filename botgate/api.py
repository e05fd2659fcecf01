"""Admin HTTP API for the gate.

Mounted under ``/_gate`` by the gate app, it allows to:
- classify a single request (classify)
- classify a batch of requests (batch)
- list active bans (bans)
- read runtime statistics (stats)

Classification here goes through the live engine, so it counts toward the
identity's rate and locale state exactly like gate traffic.
"""

from __future__ import annotations

import threading
import time
from typing import Any

from fastapi import FastAPI
from pydantic import BaseModel

from .core import ALLOW, BLOCK, RATE_LIMITED
from .engine import Eng


class ClsIn(BaseModel):
    """Input schema for classify endpoints.

    Attributes:
        ip: Client identity.
        path: Request path, e.g. "/en/about"; defaults to "/".
        ua: User-Agent.
        proto: HTTP version ("1.1").
    """

    ip: str = ""
    path: str = "/"
    ua: str = ""
    proto: str = "1.1"


class ClsOut(BaseModel):
    """Output schema for classify endpoints.

    Attributes:
        kind: "allow", "block" or "rate_limited".
        status: HTTP status the gate would answer with.
        code: Reason code.
        text: Reason text.
        retry_after: Retry hint in seconds (rate_limited only).
    """

    kind: str
    status: int
    code: str = ""
    text: str = ""
    retry_after: int | None = None


class BatchIn(BaseModel):
    items: list[ClsIn]


class BatchOut(BaseModel):
    items: list[ClsOut]
    n: int


class BanOut(BaseModel):
    """Active ban.

    Attributes:
        ip: Banned identity.
        bannedAt: ISO-8601 timestamp.
        reason: Ban reason.
        locales: Locales involved.
    """

    ip: str
    bannedAt: str
    reason: str
    locales: list[str]


class StatsOut(BaseModel):
    """Runtime stats.

    Attributes:
        up_s: Uptime seconds.
        scans: Requests classified.
        allows: Allowed requests.
        blocks: Blocked requests.
        limited: Rate-limited requests.
        bans: Active bans.
        rate_ids: Identities tracked by the rate limiter.
        loc_ids: Identities tracked by the locale detector.
    """

    up_s: float
    scans: int
    allows: int
    blocks: int
    limited: int
    bans: int
    rate_ids: int
    loc_ids: int


class Ctr:
    """Verdict counters shared by the gate and the admin API.

    The gate bumps them on the event loop while sync admin endpoints run in
    the threadpool, so every access goes through one lock.
    """

    def __init__(self) -> None:
        self._lk = threading.Lock()
        self._n = {"scans": 0, ALLOW: 0, BLOCK: 0, RATE_LIMITED: 0}

    def add(self, kind: str) -> None:
        with self._lk:
            self._n["scans"] += 1
            self._n[kind] += 1

    def snap(self) -> dict[str, int]:
        with self._lk:
            return dict(self._n)


def mk_api(eng: Eng, st: Ctr | None = None) -> FastAPI:
    """Create the admin API application.

    Args:
        eng: Engine shared with the gate.
        st: Verdict counters shared with the gate.

    Returns:
        FastAPI app.
    """
    app = FastAPI(title="botgate-api", version="0.1.0")
    t0 = time.time()
    st = st if st is not None else Ctr()

    @app.get("/api/v1/health")
    def health() -> dict[str, Any]:
        """Healthcheck."""
        return {"ok": True}

    @app.post("/api/v1/classify", response_model=ClsOut)
    def classify(x: ClsIn) -> ClsOut:
        """Classify one request.

        Args:
            x: Request fields.

        Returns:
            ClsOut verdict.
        """
        v = eng.classify(x.ip, x.path, x.ua, x.proto)
        st.add(v.kind)
        return ClsOut(kind=v.kind, status=v.status, code=v.code, text=v.text, retry_after=v.retry_after)

    @app.post("/api/v1/batch", response_model=BatchOut)
    def batch(x: BatchIn) -> BatchOut:
        """Classify a batch of requests, in order."""
        out = [classify(it) for it in x.items]
        return BatchOut(items=out, n=len(out))

    @app.get("/api/v1/bans", response_model=list[BanOut])
    def bans() -> list[BanOut]:
        """List active bans."""
        return [BanOut(ip=k, **r.asd()) for k, r in sorted(eng.bans.items().items())]

    @app.get("/api/v1/stats", response_model=StatsOut)
    def stats() -> StatsOut:
        """Get runtime stats."""
        es = eng.stats()
        n = st.snap()
        return StatsOut(
            up_s=time.time() - t0,
            scans=n["scans"],
            allows=n[ALLOW],
            blocks=n[BLOCK],
            limited=n[RATE_LIMITED],
            **es,
        )

    return app
