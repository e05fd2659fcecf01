"""Forward-auth gate.

The fronting proxy (nginx ``auth_request``, Traefik ``forwardAuth``) sends
every request here first, with the original client in X-Forwarded-For,
X-Forwarded-Uri, X-Forwarded-User-Agent and X-Forwarded-Http-Version.
The gate answers:

- 200 "OK": let the request through
- 403 + HTML page: blocked bot / banned client
- 429 + HTML page + Retry-After: rate limited

Admin API lives under ``/_gate``; everything else is gate traffic.
Background tasks (counter purge, daily summary) run for the app's lifetime.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response
from fastapi.templating import Jinja2Templates

from .api import Ctr, mk_api
from .cfg import Settings, ld_cfg
from .core import Clk, RATE_LIMITED, now_s, nrq
from .engine import Eng, mk_eng
from .evlog import EvLog
from .rep import OutErr, secs_to_next, sum_day

logger = logging.getLogger(__name__)

METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def _hv(s: str) -> str:
    """Header-safe value."""
    return s.encode("ascii", "replace").decode("ascii").replace("\r", " ").replace("\n", " ")


async def purge_loop(eng: Eng, every: float) -> None:
    while True:
        await asyncio.sleep(every)
        eng.purge()


async def summary_loop(d: Path) -> None:
    """Write yesterday's summary every day at 00:05 UTC."""
    while True:
        dl = secs_to_next(datetime.now(timezone.utc))
        logger.info("[SUMMARY] scheduled in %d minutes", round(dl / 60))
        await asyncio.sleep(dl)
        day = (datetime.now(timezone.utc) - timedelta(days=1)).strftime("%Y-%m-%d")
        try:
            await asyncio.to_thread(sum_day, d, day)
        except OutErr as e:
            logger.error("[SUMMARY] failed: %s", e)


def mk_app(
    cfg: Settings | None = None,
    eng: Eng | None = None,
    evl: EvLog | None = None,
    clk: Clk = now_s,
) -> FastAPI:
    """Create gate app.

    Args:
        cfg: Settings; loaded from the environment if None.
        eng: Engine; built from cfg if None.
        evl: Event log; built from cfg if None.
        clk: Clock used when building eng/evl.

    Returns:
        FastAPI app.

    Raises:
        CfgErr: If settings or rules are invalid.
    """
    if cfg is None:
        cfg = ld_cfg()
    if eng is None:
        eng = mk_eng(cfg, clk)
    if evl is None:
        evl = EvLog(cfg.log_path, clk)
    st = Ctr()

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        ts = [asyncio.create_task(purge_loop(eng, cfg.purge_interval))]
        if cfg.log_path is not None:
            ts.append(asyncio.create_task(summary_loop(cfg.log_path)))
        logger.info("gate up; bans=%d", len(eng.bans))
        try:
            yield
        finally:
            for t in ts:
                t.cancel()
            for t in ts:
                with contextlib.suppress(asyncio.CancelledError):
                    await t

    app = FastAPI(title="botgate", lifespan=lifespan)
    tpls = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "tpls"))

    app.mount("/_gate", mk_api(eng, st))

    @app.api_route("/{pth:path}", methods=METHODS)
    async def gate(req: Request, pth: str) -> Response:
        up = req.url.path + (f"?{req.url.query}" if req.url.query else "")
        rq = nrq(
            req.headers,
            req.client.host if req.client else None,
            up,
            req.scope.get("http_version", ""),
        )
        v = eng.classify(rq["ip"], rq["path"], rq["ua"], rq["proto"])
        st.add(v.kind)
        if v.ok:
            return PlainTextResponse("OK")

        await asyncio.to_thread(evl.verdict, v, rq["ip"], rq["ua"], rq["path"])
        hs = {"X-Blocked-Reason": _hv(v.code if v.kind == RATE_LIMITED else v.text)}
        if v.kind == RATE_LIMITED:
            hs["Retry-After"] = str(v.retry_after or 1)
            tpl = "limited.html"
        else:
            tpl = "blocked.html"
        return tpls.TemplateResponse(
            req,
            tpl,
            {"reason": v.text, "code": v.code, "email": cfg.contact_email, "retry": v.retry_after},
            status_code=v.status,
            headers=hs,
        )

    return app
