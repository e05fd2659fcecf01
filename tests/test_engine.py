import json

import pytest

MOZ = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
GBOT = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"


def test_plain_request_allowed(mk_eng):
    eng = mk_eng()
    v = eng.classify("198.51.100.1", "/", MOZ, "1.1")
    assert v.kind == "allow"
    assert (v.code, v.text, v.retry_after) == ("", "", None)


@pytest.mark.parametrize(
    "ip,path,ua,proto,code",
    [
        ("198.51.100.1", "/wp-login.php", MOZ, "1.1", "path"),
        ("198.51.100.1", "/", "Mozilla/5.0 (compatible; AhrefsBot/7.0)", "1.1", "ua"),
        ("47.82.9.10", "/", MOZ, "1.1", "subnet"),
        ("198.51.100.1", "/", MOZ, "1.0", "heur"),
    ],
)
def test_block_reasons(mk_eng, ip, path, ua, proto, code):
    v = mk_eng().classify(ip, path, ua, proto)
    assert v.kind == "block"
    assert v.status == 403
    assert v.code == code
    assert v.text


def test_path_checked_before_ua(mk_eng):
    v = mk_eng().classify("198.51.100.1", "/.env", "SemrushBot", "1.1")
    assert v.code == "path"


def test_whitelist_beats_blocked_signature(mk_eng):
    ua = GBOT + " SemrushBot"
    v = mk_eng().classify("198.51.100.1", "/wp-admin/", ua, "1.0")
    assert v.kind == "allow"


def test_whitelist_beats_ban(mk_eng):
    eng = mk_eng()
    eng.bans.ban("66.249.66.1", "test")
    assert eng.classify("66.249.66.1", "/", GBOT, "1.1").kind == "allow"


def test_static_asset_beats_ban(mk_eng):
    eng = mk_eng()
    eng.bans.ban("1.2.3.4", "test")
    v1 = eng.classify("1.2.3.4", "/css/app.css", "SemrushBot", "1.1")
    v2 = eng.classify("1.2.3.4", "/css/app.css", "SemrushBot", "1.1")
    assert v1.kind == "allow"
    assert v1 == v2


def test_static_assets_not_rate_limited(mk_eng):
    eng = mk_eng(lim=1)
    for _ in range(10):
        assert eng.classify("1.2.3.4", "/img/logo.png", MOZ, "1.1").kind == "allow"
    assert len(eng.rate) == 0


def test_ban_blocks_with_permanent_prefix(mk_eng):
    eng = mk_eng()
    eng.bans.ban("1.2.3.4", "Locale scraping: en(3)")
    v = eng.classify("1.2.3.4", "/", MOZ, "1.1")
    assert v.code == "ban"
    assert v.text == "Permanent ban: Locale scraping: en(3)"


def test_ban_expires(mk_eng, clk):
    eng = mk_eng(dur=100)
    eng.bans.ban("1.2.3.4", "x")
    clk.adv(100)
    assert eng.classify("1.2.3.4", "/", MOZ, "1.1").kind == "allow"


def test_locale_scraping_bans_and_persists(mk_eng, tmp_path):
    eng = mk_eng(thr=4, hits=3, lwin=60)
    ip = "203.0.113.9"
    vs = [eng.classify(ip, f"/{lc}/catalog", MOZ, "1.1") for _ in range(3) for lc in ("en", "de", "fr", "es")]
    assert all(v.kind == "allow" for v in vs[:-1])
    assert vs[-1].code == "locale_scrape"
    assert vs[-1].text.startswith("Locale scraping: ")

    d = json.loads((tmp_path / "bans.json").read_text(encoding="utf-8"))
    assert sorted(d[ip]["locales"]) == ["de", "en", "es", "fr"]

    v = eng.classify(ip, "/en/catalog", MOZ, "1.1")
    assert v.code == "ban"
    assert v.text == "Permanent ban: " + vs[-1].text


def test_ban_survives_restart(mk_eng, clk):
    eng = mk_eng(thr=2, hits=1)
    eng.classify("1.2.3.4", "/en/", MOZ, "1.1")
    assert eng.classify("1.2.3.4", "/de/", MOZ, "1.1").code == "locale_scrape"
    eng2 = mk_eng()
    assert eng2.classify("1.2.3.4", "/", MOZ, "1.1").code == "ban"


def test_rate_limited(mk_eng, clk):
    eng = mk_eng(lim=3, win=60)
    vs = [eng.classify("1.2.3.4", "/p", MOZ, "1.1") for _ in range(4)]
    assert [v.kind for v in vs] == ["allow", "allow", "allow", "rate_limited"]
    assert vs[-1].status == 429
    assert vs[-1].code == "rate_limit"
    assert vs[-1].retry_after == 60
    clk.adv(61)
    assert eng.classify("1.2.3.4", "/p", MOZ, "1.1").kind == "allow"


def test_blocked_requests_do_not_count_toward_rate(mk_eng):
    eng = mk_eng(lim=1)
    for _ in range(5):
        eng.classify("1.2.3.4", "/.git/config", MOZ, "1.1")
    assert eng.classify("1.2.3.4", "/", MOZ, "1.1").kind == "allow"


def test_missing_fields_degrade(mk_eng):
    v = mk_eng().classify("", "", "", "")
    assert v.kind == "allow"


def test_purge(mk_eng, clk):
    eng = mk_eng(win=60, lwin=60)
    eng.classify("1.2.3.4", "/en/", MOZ, "1.1")
    clk.adv(121)
    assert eng.purge() == {"rate": 1, "loc": 1}
    assert eng.stats() == {"bans": 0, "rate_ids": 0, "loc_ids": 0}
