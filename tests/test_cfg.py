import pytest

from botgate.cfg import ld_cfg
from botgate.core import CfgErr


def test_defaults(monkeypatch):
    for k in ("RATE_LIMIT", "RATE_WINDOW", "BAN_DURATION", "RULES_FILE"):
        monkeypatch.delenv(k, raising=False)
    c = ld_cfg()
    assert c.rate_limit == 30
    assert c.rate_window == 60
    assert c.locale_threshold >= 1
    assert c.rules_path is None


def test_env(monkeypatch):
    monkeypatch.setenv("RATE_LIMIT", "5")
    monkeypatch.setenv("BAN_FILE", "/tmp/x.json")
    c = ld_cfg()
    assert c.rate_limit == 5
    assert str(c.ban_path) == "/tmp/x.json"


def test_override_wins(monkeypatch):
    monkeypatch.setenv("RATE_LIMIT", "5")
    assert ld_cfg(rate_limit=7).rate_limit == 7


def test_empty_paths_disable(monkeypatch):
    c = ld_cfg(ban_file="", log_dir="")
    assert c.ban_path is None
    assert c.log_path is None


@pytest.mark.parametrize("k,v", [("RATE_WINDOW", "0"), ("RATE_LIMIT", "-1"), ("LOCALE_MIN_HITS", "x")])
def test_invalid_is_fatal(monkeypatch, k, v):
    monkeypatch.setenv(k, v)
    with pytest.raises(CfgErr):
        ld_cfg()
