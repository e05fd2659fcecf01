import pytest

from botgate.io import prs_ng, prs_raw, prs, prs_req, InpErr


def test_prs_req():
    assert prs_req("GET /x?a=1 HTTP/1.1") == ("/x?a=1", "1.1")
    assert prs_req("/only") == ("/only", "")
    assert prs_req("") == ("/", "")


def test_prs_raw_short():
    r = prs_raw("GET /en/ HTTP/1.0")
    assert r.path == "/en/"
    assert r.proto == "1.0"
    assert r.ip == ""


def test_prs_raw_full():
    r = prs_raw("1.2.3.4\tGET /x HTTP/1.1\tUA")
    assert r.ip == "1.2.3.4"
    assert r.ua == "UA"
    assert r.path == "/x"


def test_prs_raw_bad():
    with pytest.raises(InpErr):
        prs_raw("a\tb")


def test_prs_ng_ok():
    ln = '10.0.0.2 - - [17/Dec/2025:10:00:01 +0000] "GET /x HTTP/1.1" 200 12 "-" "Mozilla/5.0"'
    r = prs_ng(ln)
    assert r.ip == "10.0.0.2"
    assert r.proto == "1.1"
    assert r.ts == 1765965601.0


def test_prs_ng_bad():
    with pytest.raises(InpErr):
        prs_ng("not a log line")


def test_prs_dispatch():
    assert prs("raw", "GET / HTTP/1.1").path == "/"
    with pytest.raises(InpErr):
        prs("zzz", "x")
