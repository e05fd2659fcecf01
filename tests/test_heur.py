import pytest

from botgate.core import CfgErr
from botgate.heur import dfl_heur, mk_h, mk_heur

CHROME = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/{v}.0.0.0 Safari/537.36"


def test_all_components_must_match():
    h = mk_h("x", "lbl", r"Chrome/(\d+)\.", vmin=100, vmax=130, ip_pfx=("43.",), proto=("1.1",))
    assert h.match("43.1.2.3", "1.1", CHROME.format(v=120))
    assert not h.match("44.1.2.3", "1.1", CHROME.format(v=120))
    assert not h.match("43.1.2.3", "2", CHROME.format(v=120))
    assert not h.match("43.1.2.3", "1.1", CHROME.format(v=99))
    assert not h.match("43.1.2.3", "1.1", "curl/8.0")


def test_default_http10_modern_chrome():
    hs = dfl_heur()
    assert hs.match("198.51.100.1", "1.0", CHROME.format(v=124)) == "Impossible client: modern Chrome over HTTP/1.0"
    assert hs.match("198.51.100.1", "1.1", CHROME.format(v=124)) is None


def test_default_tencent_old_chrome():
    hs = dfl_heur()
    assert hs.match("43.130.5.6", "1.1", CHROME.format(v=87)).startswith("Cloud scraper")
    assert hs.match("43.130.5.6", "1.1", CHROME.format(v=131)) is None
    assert hs.match("8.8.8.8", "1.1", CHROME.format(v=87)) is None


def test_first_match_wins():
    hs = mk_heur(
        [
            {"hid": "a", "lbl": "first", "ua": r"Chrome/(\d+)"},
            {"hid": "b", "lbl": "second", "ua": r"Chrome/(\d+)"},
        ]
    )
    assert hs.match("1.1.1.1", "1.1", CHROME.format(v=1)) == "first"


@pytest.mark.parametrize(
    "x",
    [
        {"hid": "a", "lbl": "l", "ua": "Chrome/\\d+"},
        {"hid": "a", "lbl": "l", "ua": "(unclosed"},
        {"hid": "a", "lbl": "l", "ua": r"Chrome/(\d+)", "vmin": 10, "vmax": 1},
        {"hid": "a", "ua": r"Chrome/(\d+)"},
        {"hid": "a", "lbl": "l", "ua": r"Chrome/(\d+)", "vmin": "x"},
    ],
)
def test_mk_heur_bad(x):
    with pytest.raises(CfgErr):
        mk_heur([x])
