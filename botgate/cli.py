"""CLI for replaying access logs through the engine."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Any

from .cfg import ld_cfg
from .core import CfgErr
from .engine import mk_eng
from .io import InpErr, rdln, prs
from .rep import OutErr, wr_jsonl, wr_csv

logger = logging.getLogger(__name__)


class RpClk:
    """Clock driven by log timestamps; falls back to wall clock."""

    def __init__(self) -> None:
        self.t = time.time()

    def set(self, ts: float) -> None:
        self.t = ts if ts > 0 else time.time()

    def __call__(self) -> float:
        return self.t


def _ap() -> argparse.ArgumentParser:
    """Build argparse parser."""
    p = argparse.ArgumentParser(prog="botgate-replay", add_help=True)
    p.add_argument("--in", dest="inp", required=True, help="access log path")
    p.add_argument("--fmt", dest="fmt", default="nginx", choices=["nginx", "raw"])
    p.add_argument("--out", dest="outp", required=True, help="output file path")
    p.add_argument("--ofmt", dest="ofmt", default="jsonl", choices=["jsonl", "csv"])
    p.add_argument("--bans", dest="bans", default="", help="ban file to load and update (optional)")
    p.add_argument("--rules", dest="rules", default="", help="rules JSON path (optional)")
    p.add_argument("-v", dest="vrb", action="store_true", help="verbose logging")
    return p


def run_cli(argv: list[str] | None = None) -> int:
    """Run CLI.

    Args:
        argv: Arguments list without program name.

    Returns:
        Exit code (0 ok, 2 on handled error).
    """
    a = _ap().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if a.vrb else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    clk = RpClk()
    try:
        cfg = ld_cfg(ban_file=a.bans, rules_file=a.rules, log_dir="")
        eng = mk_eng(cfg, clk)
    except CfgErr as e:
        print(f"err: {e}", file=sys.stderr)
        return 2

    rows: list[dict[str, Any]] = []
    try:
        for ln in rdln(Path(a.inp)):
            pr = prs(a.fmt, ln)
            clk.set(pr.ts)
            v = eng.classify(pr.ip, pr.path, pr.ua, pr.proto)
            rows.append(
                {
                    "ip": pr.ip,
                    "path": pr.path,
                    "ua": pr.ua,
                    "kind": v.kind,
                    "code": v.code,
                    "text": v.text,
                }
            )
    except InpErr as e:
        print(f"err: {e}", file=sys.stderr)
        return 2

    logger.info("replayed %d requests, %d not allowed", len(rows), sum(1 for r in rows if r["kind"] != "allow"))
    try:
        if a.ofmt == "jsonl":
            wr_jsonl(Path(a.outp), rows)
        else:
            wr_csv(Path(a.outp), rows)
    except OutErr as e:
        print(f"err: {e}", file=sys.stderr)
        return 2
    return 0
