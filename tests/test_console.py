# tests/test_console.py
import io

from rich.console import Console

import config
from console import COLUMNS, ConsoleView, build_table, format_min, stats_row
from models import ReplyStatus
from stats import StatTracker


def render(renderable, width=200):
    console = Console(file=io.StringIO(), width=width, color_system=None)
    console.print(renderable)
    return console.file.getvalue()


class FakeEngine:
    display_name = "example.com [93.184.216.34]"

    def __init__(self, stats):
        self.stats = stats
        self.snapshots = 0

    def snapshot_console(self):
        self.snapshots += 1
        return [t.copy() for t in self.stats]


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_stats_row_values():
    t = StatTracker(hop_id=2, address="10.0.0.2", calc_percentile=True)
    for rtt in (10, 30, 15):
        t.record_round_trip_time(rtt)
    t.record_lost()

    row = stats_row(t)
    assert len(row) == len(COLUMNS)
    assert row[:7] == ("2", "10.0.0.2", "4", "1", "25%", "15", "15")
    assert row[7] == "0"  # fewer than five samples
    assert row[8:11] == ("10", "30", "18")
    assert row[12:] == ("10", "20", "15")


def test_unset_minimum_renders_blank():
    assert format_min(config.MIN_DEFAULT_VALUE) == ""
    assert format_min(4) == "4"
    row = stats_row(StatTracker(hop_id=1, calc_percentile=False))
    assert row[1] == config.NO_RESPONSE_ADDRESS
    assert row[7] == "N/A"
    assert row[8] == ""
    assert row[12] == ""


def test_table_shows_timed_out_hops():
    stats = [
        StatTracker(hop_id=1, address="10.0.0.1", reply_status=ReplyStatus.TTL_EXPIRED),
        StatTracker(hop_id=2, reply_status=ReplyStatus.TIMED_OUT),
    ]
    stats[0].record_round_trip_time(7)
    text = render(build_table(stats))
    assert "Request timed out" in text
    assert "10.0.0.1" in text
    assert "Avg JT" in text


def test_view_refreshes_on_first_cycle_then_throttles():
    engine = FakeEngine([StatTracker(hop_id=1, address="10.0.0.1")])
    clock = FakeClock()
    out = Console(file=io.StringIO(), width=200, color_system=None)
    view = ConsoleView(engine, ping_frequency_ms=1000, refresh_ms=5000, console=out, clock=clock)

    view.on_cycle_complete()
    assert engine.snapshots == 1
    text = out.file.getvalue()
    assert "Routes for example.com [93.184.216.34]" in text
    assert "Ping Frequency (ms):  1000" in text
    assert "never" in text

    clock.now += 1
    view.on_cycle_complete()
    assert engine.snapshots == 1

    clock.now += 5
    view.on_cycle_complete()
    assert engine.snapshots == 2
