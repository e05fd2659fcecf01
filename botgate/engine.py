"""Decision engine.

Runs the classifiers in fixed priority order and returns the first definitive
verdict:

1. static asset            -> allow
2. whitelisted crawler     -> allow
3. active ban              -> block
4. blocked path            -> block
5. blocked user agent      -> block
6. blocked subnet          -> block
7. combinatorial heuristic -> block
8. locale scraping         -> ban + block
9. rate limit              -> rate_limited
10. otherwise              -> allow

The engine owns no state besides wiring; components keep their own maps and
do their own persistence.
"""

from __future__ import annotations

import logging
from typing import Any

from . import core as c
from .bans import BanStore
from .cfg import Settings
from .core import Clk, Verdict, now_s
from .loc import LocDet
from .rate import RtLim
from .rules import Rules, ld_rules

logger = logging.getLogger(__name__)


class Eng:
    """Request classifier pipeline."""

    def __init__(self, rules: Rules, bans: BanStore, rate: RtLim, loc: LocDet) -> None:
        self.rules = rules
        self.bans = bans
        self.rate = rate
        self.loc = loc

    def classify(self, ip: str, path: str, ua: str, proto: str = "") -> Verdict:
        """Classify one request.

        Args:
            ip: Client identity.
            path: Request path.
            ua: Raw user agent.
            proto: HTTP version string.

        Returns:
            Verdict.
        """
        ip = ip or "unknown"
        path = path or "/"
        ua = ua or ""
        rs = self.rules

        if rs.assets.match(path) is not None:
            return c.ALLOW_V
        if rs.whitelist.match(ua) is not None:
            return c.ALLOW_V

        br = self.bans.lookup(ip)
        if br is not None:
            return c.blk(c.R_BAN, f"Permanent ban: {br.reason}")

        lbl = rs.paths.match(path)
        if lbl is not None:
            return c.blk(c.R_PATH, lbl)
        lbl = rs.uas.match(ua)
        if lbl is not None:
            return c.blk(c.R_UA, lbl)
        lbl = rs.subnets.match(ip)
        if lbl is not None:
            return c.blk(c.R_SUBNET, lbl)
        lbl = rs.heur.match(ip, proto, ua)
        if lbl is not None:
            return c.blk(c.R_HEUR, lbl)

        tg = self.loc.observe(ip, path)
        if tg is not None:
            self.bans.ban(ip, tg.reason, tg.locales)
            return c.blk(c.R_LOC, tg.reason)

        if self.rate.hit(ip):
            return Verdict(c.RATE_LIMITED, c.R_RATE, "Too many requests", self.rate.retry_in(ip))

        return c.ALLOW_V

    def purge(self) -> dict[str, int]:
        """Purge stale rate and locale counters."""
        out = {"rate": self.rate.purge(), "loc": self.loc.purge()}
        if out["rate"] or out["loc"]:
            logger.debug("purged stale counters: %s", out)
        return out

    def stats(self) -> dict[str, Any]:
        return {
            "bans": len(self.bans.items()),
            "rate_ids": len(self.rate),
            "loc_ids": len(self.loc),
        }


def mk_eng(cfg: Settings, clk: Clk = now_s) -> Eng:
    """Build the engine from settings.

    Loads rules (fatal on error) and the ban file (degrades to no bans).

    Args:
        cfg: Settings.
        clk: Clock shared by every component.

    Returns:
        Eng.

    Raises:
        CfgErr: If rules are malformed.
    """
    rules = ld_rules(cfg.rules_path)
    bans = BanStore(cfg.ban_path, cfg.ban_duration, clk)
    bans.load()
    eng = Eng(
        rules=rules,
        bans=bans,
        rate=RtLim(cfg.rate_limit, cfg.rate_window, clk),
        loc=LocDet(cfg.locale_threshold, cfg.locale_min_hits, cfg.locale_window, clk),
    )
    logger.info(
        "engine ready: rate %d/%gs, locale %d x %d hits/%gs, ban %gs, "
        "assets=%d whitelist=%d paths=%d uas=%d subnets=%d heur=%d",
        cfg.rate_limit,
        cfg.rate_window,
        cfg.locale_threshold,
        cfg.locale_min_hits,
        cfg.locale_window,
        cfg.ban_duration,
        len(rules.assets),
        len(rules.whitelist),
        len(rules.paths),
        len(rules.uas),
        len(rules.subnets),
        len(rules.heur),
    )
    return eng
