"""Signature registries and rules loader.

Registry order is significant: the first matching signature wins, so more
specific or severe entries come first.
"""

from __future__ import annotations

import ipaddress
import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from .core import CfgErr
from .heur import HeurSet, dfl_heur, mk_heur


@dataclass(frozen=True)
class Sig:
    """Single signature.

    Args:
        rx: Compiled case-insensitive pattern.
        lbl: Human-readable reason.
    """

    rx: re.Pattern[str]
    lbl: str


class SigReg:
    """Ordered, immutable signature registry."""

    def __init__(self, nm: str, sigs: Iterable[Sig] = ()) -> None:
        self.nm = nm
        self.sigs: tuple[Sig, ...] = tuple(sigs)

    def __len__(self) -> int:
        return len(self.sigs)

    def match(self, s: str) -> str | None:
        """Return the label of the first signature found in s."""
        for sg in self.sigs:
            if sg.rx.search(s):
                return sg.lbl
        return None


def mk_reg(nm: str, items: Iterable[tuple[str, str]]) -> SigReg:
    """Compile (pattern, label) pairs into a registry.

    Args:
        nm: Registry name (used in error messages).
        items: Pairs in priority order.

    Returns:
        SigReg.

    Raises:
        CfgErr: If a pattern is malformed.
    """
    sigs: list[Sig] = []
    for i, (ps, lbl) in enumerate(items):
        try:
            rx = re.compile(ps, re.IGNORECASE)
        except re.error as e:
            raise CfgErr(f"bad pattern in {nm}[{i}]: {ps!r}: {e}") from e
        sigs.append(Sig(rx, lbl))
    return SigReg(nm, sigs)


IPNet = ipaddress.IPv4Network | ipaddress.IPv6Network


def prs_net(s: str) -> IPNet:
    """Parse a subnet entry.

    Accepts CIDR ("47.82.8.0/21") or a legacy dotted prefix ("47.82.8."),
    which maps to the matching /8, /16 or /24.

    Raises:
        CfgErr: If the entry is neither.
    """
    s = (s or "").strip()
    if s.endswith("."):
        ps = s[:-1].split(".")
        if not 1 <= len(ps) <= 3:
            raise CfgErr(f"bad subnet prefix: {s!r}")
        s = ".".join(ps + ["0"] * (4 - len(ps))) + f"/{8 * len(ps)}"
    try:
        return ipaddress.ip_network(s, strict=False)
    except ValueError as e:
        raise CfgErr(f"bad subnet: {s!r}") from e


class NetReg:
    """Ordered registry of blocked subnets (real CIDR containment)."""

    def __init__(self, nm: str, nets: Iterable[tuple[IPNet, str]] = ()) -> None:
        self.nm = nm
        self.nets: tuple[tuple[IPNet, str], ...] = tuple(nets)

    def __len__(self) -> int:
        return len(self.nets)

    def match(self, ip: str) -> str | None:
        try:
            a = ipaddress.ip_address(ip)
        except ValueError:
            return None
        if isinstance(a, ipaddress.IPv6Address) and a.ipv4_mapped is not None:
            a = a.ipv4_mapped
        for n, lbl in self.nets:
            if a.version == n.version and a in n:
                return lbl
        return None


def mk_nets(nm: str, items: Iterable[tuple[str, str]]) -> NetReg:
    return NetReg(nm, [(prs_net(s), lbl) for s, lbl in items])


DFL_ASSETS: list[tuple[str, str]] = [
    (r"^/build/", "static asset"),
    (r"^/css/", "static asset"),
    (r"^/fonts/", "static asset"),
    (r"^/img/", "static asset"),
    (r"^/ads\.txt$", "static asset"),
    (r"^/android", "static asset"),
    (r"^/favicon", "static asset"),
    (r"^/humans\.txt$", "static asset"),
    (r"^/manifest\.json$", "static asset"),
    (r"^/robots\.txt$", "static asset"),
    (r"^/security\.txt$", "static asset"),
    (r"^/site\.webmanifest$", "static asset"),
    (r"^/apple", "static asset"),
    (r"^/mstile", "static asset"),
    (r"^/safari", "static asset"),
]

DFL_WHITELIST: list[tuple[str, str]] = [
    (r"Googlebot|Google-InspectionTool|Storebot-Google|AdsBot-Google", "Google crawler"),
    (r"bingbot|BingPreview", "Bing crawler"),
    (r"DuckDuckBot|DuckDuckGo-Favicons-Bot", "DuckDuckGo crawler"),
    (r"Applebot", "Apple crawler"),
    (r"YandexBot", "Yandex crawler"),
    (r"Qwantbot", "Qwant crawler"),
    (r"facebookexternalhit|meta-externalagent", "Meta link preview"),
    (r"Twitterbot", "X/Twitter link preview"),
    (r"LinkedInBot", "LinkedIn link preview"),
    (r"Slackbot", "Slack link preview"),
    (r"Discordbot", "Discord link preview"),
    (r"TelegramBot", "Telegram link preview"),
    (r"WhatsApp", "WhatsApp link preview"),
    (r"UptimeRobot|Better Uptime Bot", "Uptime monitor"),
]

DFL_PATHS: list[tuple[str, str]] = [
    (r"^/\.env", "Probe: environment file"),
    (r"^/\.git(/|$)", "Probe: git repository"),
    (r"^/\.(aws|ssh|svn|hg|DS_Store)", "Probe: hidden file"),
    (r"^/wp-(admin|login|includes|content)", "Probe: WordPress"),
    (r"^/xmlrpc\.php", "Probe: WordPress XML-RPC"),
    (r"^/(phpmyadmin|pma|myadmin)", "Probe: phpMyAdmin"),
    (r"^/vendor/phpunit", "Probe: PHPUnit RCE"),
    (r"^/cgi-bin/", "Probe: CGI"),
    (r"^/(actuator|jolokia)(/|$)", "Probe: Spring actuator"),
    (r"^/(HNAP1|boaform|GponForm)", "Probe: router exploit"),
    (r"(\.\./|%2e%2e%2f)", "Probe: path traversal"),
]

DFL_UAS: list[tuple[str, str]] = [
    # Chinese bots
    (r"AliyunSecBot", "Chinese security scanner bot"),
    (r"PetalBot", "Huawei search engine bot"),
    # SEO scrapers
    (r"SemrushBot", "SEO scraper bot"),
    (r"AhrefsBot", "SEO scraper bot"),
    (r"DotBot", "SEO scraper bot"),
    (r"MJ12bot", "SEO scraper bot"),
    (r"BLEXBot|DataForSeoBot|serpstatbot", "SEO scraper bot"),
    # scanners
    (r"\b(sqlmap|nikto|nmap|acunetix|masscan|zgrab|nuclei)\b", "Vulnerability scanner"),
    # impossible browser combinations (spoofed user agents)
    (r"Windows NT 6\.1.*Chrome/12[0-9]", "Impossible browser: Windows 7 + Chrome 120+"),
    (r"Windows NT 6\.1.*Chrome/13[0-9]", "Impossible browser: Windows 7 + Chrome 130+"),
    (r"Windows NT 6\.1.*Chrome/14[0-9]", "Impossible browser: Windows 7 + Chrome 140+"),
    (r"iPad; CPU iPad OS 1_", "Impossible browser: iPad OS 1.x does not exist"),
    (r"iPhone OS 26_", "Impossible browser: iOS 26 does not exist"),
]

DFL_SUBNETS: list[tuple[str, str]] = [
    ("47.82.8.0/21", "Alibaba Cloud scanner subnet"),
    ("47.82.16.0/21", "Alibaba Cloud scanner subnet"),
    ("47.79.0.0/21", "Alibaba Cloud scanner subnet"),
    ("8.222.128.0/21", "Alibaba Cloud scanner subnet"),
    ("114.119.128.0/19", "Huawei Cloud crawler subnet"),
]


@dataclass(frozen=True)
class Rules:
    """All registries used by the engine."""

    assets: SigReg
    whitelist: SigReg
    paths: SigReg
    uas: SigReg
    subnets: NetReg
    heur: HeurSet = field(default_factory=HeurSet)


def dfl_rules() -> Rules:
    """Default ruleset."""
    return Rules(
        assets=mk_reg("assets", DFL_ASSETS),
        whitelist=mk_reg("whitelist", DFL_WHITELIST),
        paths=mk_reg("paths", DFL_PATHS),
        uas=mk_reg("uas", DFL_UAS),
        subnets=mk_nets("subnets", DFL_SUBNETS),
        heur=dfl_heur(),
    )


def _pairs(d: dict[str, Any], k: str, kp: str) -> list[tuple[str, str]]:
    xs = d[k]
    if not isinstance(xs, list):
        raise CfgErr(f"rules.{k} must be a list")
    out: list[tuple[str, str]] = []
    for x in xs:
        if not isinstance(x, dict):
            raise CfgErr(f"rules.{k} items must be objects")
        try:
            out.append((str(x[kp]), str(x.get("lbl", k))))
        except KeyError as e:
            raise CfgErr(f"missing field in rules.{k}: {e}") from e
    return out


def ld_rules(p: Path | None) -> Rules:
    """Load rules, overriding defaults with a JSON file.

    Args:
        p: Path to rules JSON or None.

    Returns:
        Rules; registries missing from the file keep their defaults.

    Raises:
        CfgErr: If the file cannot be loaded or is invalid.
    """
    if p is None:
        return dfl_rules()
    try:
        d = json.loads(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise CfgErr(f"cannot read rules: {p}") from e
    except json.JSONDecodeError as e:
        raise CfgErr("rules must be JSON") from e
    if not isinstance(d, dict):
        raise CfgErr("rules root must be object")

    def reg(k: str, dfl: list[tuple[str, str]]) -> SigReg:
        return mk_reg(k, _pairs(d, k, "ps") if k in d else dfl)

    return Rules(
        assets=reg("assets", DFL_ASSETS),
        whitelist=reg("whitelist", DFL_WHITELIST),
        paths=reg("paths", DFL_PATHS),
        uas=reg("uas", DFL_UAS),
        subnets=mk_nets("subnets", _pairs(d, "subnets", "net") if "subnets" in d else DFL_SUBNETS),
        heur=mk_heur(d["heur"]) if "heur" in d else dfl_heur(),
    )
