import json
from datetime import datetime, timezone
from pathlib import Path

from botgate.core import ALLOW_V, Verdict, blk
from botgate.evlog import EvLog
from botgate.rep import secs_to_next, sum_day, tally, wr_csv, wr_jsonl


def test_evlog_writes_daily_file(tmp_path: Path, clk):
    ev = EvLog(tmp_path, clk)
    ev.verdict(blk("ua", "SEO scraper bot"), "1.2.3.4", "AhrefsBot", "/")
    ev.verdict(Verdict("rate_limited", "rate_limit", "Too many requests", 60), "1.2.3.4", "x", "/a")
    ev.verdict(ALLOW_V, "1.2.3.4", "x", "/b")
    lines = (tmp_path / "blocked-2023-11-14.log").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    e = json.loads(lines[0])
    assert e["type"] == "bot"
    assert e["reason"] == "SEO scraper bot"
    assert e["userAgent"] == "AhrefsBot"
    assert json.loads(lines[1])["type"] == "rate_limit"


def test_evlog_write_failure_does_not_raise(tmp_path: Path, clk, caplog):
    f = tmp_path / "f"
    f.write_text("x", encoding="utf-8")
    EvLog(f, clk).emit("bot", "1.2.3.4", "ua", "r", "/")
    assert "failed to write event log" in caplog.text


def test_tally_skips_malformed():
    st = tally(
        [
            '{"type": "bot", "ip": "1.1.1.1", "reason": "a"}',
            "garbage",
            '{"type": "bot", "ip": "1.1.1.1", "reason": "b"}',
            '{"type": "rate_limit", "ip": "2.2.2.2", "reason": "Too many requests"}',
            "",
        ]
    )
    assert st["total"] == 3
    assert st["by_type"] == {"bot": 2, "rate_limit": 1}
    assert st["top_ips"][0] == ("1.1.1.1", 2)


def test_sum_day(tmp_path: Path, clk):
    ev = EvLog(tmp_path, clk)
    for _ in range(3):
        ev.emit("bot", "1.2.3.4", "ua", "SEO scraper bot", "/")
    sp = sum_day(tmp_path, "2023-11-14")
    txt = sp.read_text(encoding="utf-8")
    assert sp.name == "summary-2023-11-14.txt"
    assert "Total Blocked Requests: 3" in txt
    assert "  1.2.3.4: 3" in txt


def test_sum_day_no_log(tmp_path: Path):
    assert sum_day(tmp_path, "2020-01-01") is None


def test_secs_to_next():
    now = datetime(2025, 1, 1, 23, 0, tzinfo=timezone.utc)
    assert secs_to_next(now) == 65 * 60
    now = datetime(2025, 1, 1, 0, 1, tzinfo=timezone.utc)
    assert secs_to_next(now) == 4 * 60


def test_wr_jsonl_csv(tmp_path: Path):
    rows = [{"ip": "1.2.3.4", "kind": "block"}]
    wr_jsonl(tmp_path / "o.jsonl", rows)
    wr_csv(tmp_path / "o.csv", rows)
    assert json.loads((tmp_path / "o.jsonl").read_text(encoding="utf-8")) == rows[0]
    assert (tmp_path / "o.csv").read_text(encoding="utf-8").splitlines()[0] == "ip,kind"
