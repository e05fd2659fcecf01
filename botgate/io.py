"""I/O helpers and parsers for access log lines.

Supports:
- nginx combined access log lines
- raw lines ("IP<TAB>REQ<TAB>UA")
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator

from .core import BgErr


class InpErr(BgErr):
    """Raised when input cannot be parsed."""


@dataclass(frozen=True)
class PrsRes:
    """Parsed request record.

    Args:
        ip: Client IP.
        path: Request path (with query).
        ua: User-Agent.
        proto: HTTP version ("1.1"), "" if unknown.
        ts: Epoch seconds (0.0 if unknown).
    """

    ip: str
    path: str
    ua: str
    proto: str = ""
    ts: float = 0.0


def rdln(p: Path) -> Iterator[str]:
    """Read non-empty lines from a UTF-8 text file.

    Args:
        p: Path to input file.

    Yields:
        Lines without trailing newline.

    Raises:
        InpErr: If file cannot be read as UTF-8.
    """
    try:
        with p.open("r", encoding="utf-8") as f:
            for ln in f:
                s = ln.rstrip("\n")
                if s.strip():
                    yield s
    except UnicodeDecodeError as e:
        raise InpErr("file must be UTF-8") from e
    except OSError as e:
        raise InpErr(f"cannot read: {p}") from e


def prs_req(req: str) -> tuple[str, str]:
    """Split a request line into (path, proto).

    "GET /x HTTP/1.1" -> ("/x", "1.1"); a bare path gives ("/path", "").
    """
    ps = req.split()
    if not ps:
        return "/", ""
    if len(ps) == 1:
        return ps[0], ""
    proto = ""
    if len(ps) >= 3 and ps[2].upper().startswith("HTTP/"):
        proto = ps[2][5:]
    return ps[1], proto


def prs_raw(ln: str) -> PrsRes:
    """Parse a raw request line.

    Expected formats:
    - "IP<TAB>REQ<TAB>UA"
    - "REQ" (IP/UA become empty)

    Args:
        ln: Input line.

    Returns:
        Parsed record.
    """
    ps = ln.split("\t")
    if len(ps) == 1:
        path, proto = prs_req(ps[0].strip())
        return PrsRes(ip="", path=path, ua="", proto=proto)
    if len(ps) >= 3:
        path, proto = prs_req(ps[1].strip())
        return PrsRes(ip=ps[0].strip(), path=path, ua=ps[2].strip(), proto=proto)
    raise InpErr("bad raw line")


_NG = re.compile(
    r'^(?P<ip>\S+)\s+\S+\s+\S+\s+\[(?P<tm>[^\]]+)\]\s+"(?P<req>[^"]+)"\s+\d{3}\s+\S+\s+"[^"]*"\s+"(?P<ua>[^"]*)"'
)


def prs_ng(ln: str) -> PrsRes:
    """Parse nginx combined access log line.

    Args:
        ln: Nginx access log line.

    Returns:
        Parsed record (ip, path, ua, proto, timestamp).

    Raises:
        InpErr: If line does not look like combined log.
    """
    m = _NG.match(ln)
    if not m:
        raise InpErr("bad nginx line")
    try:
        ts = datetime.strptime(m.group("tm"), "%d/%b/%Y:%H:%M:%S %z").timestamp()
    except ValueError as e:
        raise InpErr(f"bad nginx time: {m.group('tm')!r}") from e
    path, proto = prs_req(m.group("req"))
    return PrsRes(
        ip=m.group("ip"),
        path=path,
        ua=m.group("ua"),
        proto=proto,
        ts=ts,
    )


def prs(fmt: str, ln: str) -> PrsRes:
    """Dispatch parser by format.

    Args:
        fmt: "nginx" or "raw".
        ln: Line.

    Returns:
        Parsed record.

    Raises:
        InpErr: If format is unsupported or parsing fails.
    """
    f = (fmt or "").lower().strip()
    if f == "nginx":
        return prs_ng(ln)
    if f == "raw":
        return prs_raw(ln)
    raise InpErr(f"bad fmt: {fmt!r}")
