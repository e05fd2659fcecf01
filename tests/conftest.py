import pytest

from botgate.bans import BanStore
from botgate.engine import Eng
from botgate.loc import LocDet
from botgate.rate import RtLim
from botgate.rules import dfl_rules


class FakeClk:
    def __init__(self, t: float = 1_700_000_000.0):
        self.t = t

    def __call__(self) -> float:
        return self.t

    def adv(self, s: float) -> None:
        self.t += s


@pytest.fixture
def clk():
    return FakeClk()


@pytest.fixture
def mk_eng(tmp_path, clk):
    def _mk(lim=30, win=60, thr=4, hits=3, lwin=60, dur=3600, bp="bans.json"):
        bans = BanStore(tmp_path / bp if bp else None, dur, clk)
        bans.load()
        return Eng(
            rules=dfl_rules(),
            bans=bans,
            rate=RtLim(lim, win, clk),
            loc=LocDet(thr, hits, lwin, clk),
        )

    return _mk
