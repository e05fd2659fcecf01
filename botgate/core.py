"""Core types shared by every classifier.

The module contains the error taxonomy, the verdict type and request
normalization utilities.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping


Clk = Callable[[], float]


def now_s() -> float:
    """Default clock: wall-clock epoch seconds."""
    return time.time()


class BgErr(Exception):
    """Base exception for botgate."""


class CfgErr(BgErr):
    """Raised when config/rules are invalid."""


class StoreErr(BgErr):
    """Raised when ban storage cannot be read or written."""


ALLOW = "allow"
BLOCK = "block"
RATE_LIMITED = "rate_limited"

# reason codes
R_BAN = "ban"
R_PATH = "path"
R_UA = "ua"
R_SUBNET = "subnet"
R_HEUR = "heur"
R_LOC = "locale_scrape"
R_RATE = "rate_limit"


@dataclass(frozen=True)
class Verdict:
    """Result of one classification.

    Args:
        kind: "allow", "block" or "rate_limited".
        code: Machine-readable reason code ("" for allow).
        text: Human-readable reason ("" for allow).
        retry_after: Seconds until retry makes sense (rate_limited only).
    """

    kind: str
    code: str = ""
    text: str = ""
    retry_after: int | None = None

    @property
    def status(self) -> int:
        """HTTP status class for the verdict."""
        if self.kind == BLOCK:
            return 403
        if self.kind == RATE_LIMITED:
            return 429
        return 200

    @property
    def ok(self) -> bool:
        return self.kind == ALLOW

    def asd(self) -> dict[str, Any]:
        """Convert to dict."""
        return {"kind": self.kind, "code": self.code, "text": self.text, "retry_after": self.retry_after}


ALLOW_V = Verdict(ALLOW)


def blk(code: str, text: str) -> Verdict:
    return Verdict(BLOCK, code, text)


def _hdr(h: Mapping[str, str], k: str) -> str:
    return str(h.get(k, "") or "").strip()


def nrq(h: Mapping[str, str], peer: str | None = None, upath: str | None = None, proto: str | None = None) -> dict[str, str]:
    """Normalize transport inputs into classifier inputs.

    Forwarding headers set by the fronting proxy win over transport values.
    Behind a proxy the transport HTTP version is the proxy hop's, so the
    client version comes only from X-Forwarded-Http-Version; without it the
    protocol is "" and protocol-constrained heuristics never fire.

    Args:
        h: Request headers (case-insensitive mapping or lower-cased dict).
        peer: Transport-layer peer address, if known.
        upath: Request URL path (with query), if known.
        proto: Transport HTTP version string ("1.0", "1.1", "2").

    Returns:
        New dict with stable keys: ip, path, ua, proto.
    """
    xff = _hdr(h, "x-forwarded-for")
    xuri = _hdr(h, "x-forwarded-uri")
    xua = _hdr(h, "x-forwarded-user-agent")
    ip = xff.split(",")[0].strip() if xff else ""
    if not ip:
        ip = str(peer or "").strip() or "unknown"
    path = xuri or str(upath or "").strip() or "/"
    ua = xua or _hdr(h, "user-agent")
    pv = _hdr(h, "x-forwarded-http-version")
    if not pv and not (xff or xuri or xua):
        pv = str(proto or "").strip()
    return {"ip": ip, "path": path, "ua": ua, "proto": pv}
