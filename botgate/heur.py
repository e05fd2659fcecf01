"""Combinatorial heuristics.

A heuristic fires only when every configured component matches: identity
prefix, protocol version and a user-agent version range. Each component alone
is harmless, the conjunction is what real browsers never produce.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable

from .core import CfgErr


@dataclass(frozen=True)
class Heur:
    """Single combinatorial heuristic.

    Args:
        hid: Heuristic identifier.
        lbl: Block reason.
        ua_rx: Compiled pattern with one group capturing an integer version.
        vmin: Lowest matching version (inclusive).
        vmax: Highest matching version (inclusive).
        ip_pfx: Identity prefixes; empty means any identity.
        proto: HTTP versions; empty means any protocol.
    """

    hid: str
    lbl: str
    ua_rx: re.Pattern[str]
    vmin: int = 0
    vmax: int = 10**6
    ip_pfx: tuple[str, ...] = ()
    proto: tuple[str, ...] = ()

    def match(self, ip: str, proto: str, ua: str) -> bool:
        if self.ip_pfx and not ip.startswith(self.ip_pfx):
            return False
        if self.proto and proto not in self.proto:
            return False
        m = self.ua_rx.search(ua)
        if not m:
            return False
        try:
            v = int(m.group(1))
        except (IndexError, TypeError, ValueError):
            return False
        return self.vmin <= v <= self.vmax


class HeurSet:
    """Ordered heuristics; first match wins."""

    def __init__(self, hs: Iterable[Heur] = ()) -> None:
        self.hs: tuple[Heur, ...] = tuple(hs)

    def __len__(self) -> int:
        return len(self.hs)

    def match(self, ip: str, proto: str, ua: str) -> str | None:
        for h in self.hs:
            if h.match(ip, proto, ua):
                return h.lbl
        return None


def mk_h(
    hid: str,
    lbl: str,
    ua_rx: str,
    vmin: int = 0,
    vmax: int = 10**6,
    ip_pfx: Iterable[str] = (),
    proto: Iterable[str] = (),
) -> Heur:
    """Build a heuristic, compiling its pattern.

    Raises:
        CfgErr: If the pattern is malformed or has no capture group.
    """
    try:
        rx = re.compile(ua_rx, re.IGNORECASE)
    except re.error as e:
        raise CfgErr(f"bad heur pattern for {hid!r}: {e}") from e
    if rx.groups < 1:
        raise CfgErr(f"heur {hid!r} pattern needs a version group")
    if int(vmin) > int(vmax):
        raise CfgErr(f"heur {hid!r}: vmin > vmax")
    return Heur(
        hid=hid,
        lbl=lbl,
        ua_rx=rx,
        vmin=int(vmin),
        vmax=int(vmax),
        ip_pfx=tuple(map(str, ip_pfx)),
        proto=tuple(map(str, proto)),
    )


# Tencent Cloud ranges seen running headless scrapers with stale Chrome builds.
_TC_PFX = ("43.128.", "43.130.", "43.131.", "43.133.", "43.135.", "43.152.", "43.153.", "43.159.")


def dfl_heur() -> HeurSet:
    """Default heuristics."""
    return HeurSet(
        [
            mk_h(
                "h10_chrome",
                "Impossible client: modern Chrome over HTTP/1.0",
                r"Chrome/(\d+)\.",
                vmin=100,
                proto=("1.0",),
            ),
            mk_h(
                "tc_old_chrome",
                "Cloud scraper: Tencent Cloud range + outdated Chrome",
                r"Chrome/(\d+)\.",
                vmax=99,
                ip_pfx=_TC_PFX,
                proto=("1.1",),
            ),
        ]
    )


def mk_heur(xs: list[Any]) -> HeurSet:
    """Build heuristics from config objects.

    Args:
        xs: List of dicts (hid, lbl, ua, vmin, vmax, ip_pfx, proto).

    Returns:
        HeurSet in the authored order.

    Raises:
        CfgErr: If an item is malformed.
    """
    if not isinstance(xs, list):
        raise CfgErr("rules.heur must be a list")
    hs: list[Heur] = []
    for x in xs:
        if not isinstance(x, dict):
            raise CfgErr("rules.heur items must be objects")
        try:
            hs.append(
                mk_h(
                    hid=str(x["hid"]),
                    lbl=str(x["lbl"]),
                    ua_rx=str(x["ua"]),
                    vmin=int(x.get("vmin", 0)),
                    vmax=int(x.get("vmax", 10**6)),
                    ip_pfx=x.get("ip_pfx", ()),
                    proto=x.get("proto", ()),
                )
            )
        except KeyError as e:
            raise CfgErr(f"missing heur field: {e}") from e
        except (TypeError, ValueError) as e:
            raise CfgErr(f"bad heur value: {e}") from e
    return HeurSet(hs)
