"""CLI runner for the gate."""

from __future__ import annotations

import argparse
import logging
import sys

import uvicorn

from .cfg import ld_cfg
from .core import CfgErr
from .webapp import mk_app


def _ap() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="botgate-web", add_help=True)
    p.add_argument("--host", default=None, help="listen host (default: $HOST)")
    p.add_argument("--port", default=None, type=int, help="listen port (default: $PORT)")
    p.add_argument("--log-level", dest="lvl", default="info", choices=["debug", "info", "warning", "error"])
    return p


def run_web(argv: list[str] | None = None) -> int:
    """Run the gate server.

    Refuses to start on invalid settings or rules.

    Args:
        argv: Arg list.

    Returns:
        Exit code.
    """
    a = _ap().parse_args(argv)
    logging.basicConfig(level=a.lvl.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        cfg = ld_cfg()
        app = mk_app(cfg)
    except CfgErr as e:
        print(f"err: {e}", file=sys.stderr)
        return 2
    uvicorn.run(app, host=a.host or cfg.host, port=a.port or cfg.port, log_level=a.lvl)
    return 0
