#!/usr/bin/env python3

import time
from datetime import datetime
from typing import Optional, Sequence

from rich import box
from rich.console import Console, Group
from rich.table import Table
from rich.text import Text

import config
from models import ReplyStatus
from stats import StatTracker

COLUMNS = ("Hop", "Address", "Sent", "Lost", "Lost%", "RTT", "JTR",
           "P98 RT", "Min RT", "Max RT", "Avg RT",
           "P98 JT", "Min JT", "Max JT", "Avg JT")


def format_ms(value) -> str:
    if value is None:
        return "N/A"
    return f"{value:,.0f}"


def format_min(value) -> str:
    """Running minimums still at their unset marker render blank."""
    if value >= config.MIN_DEFAULT_VALUE:
        return ""
    return format_ms(value)


def stats_row(tracker: StatTracker):
    """Column values for one hop, in COLUMNS order."""
    return (
        str(tracker.hop_id),
        tracker.display_address,
        str(tracker.total_pings),
        str(tracker.total_lost),
        f"{tracker.lost_percentage:.0f}%",
        format_ms(tracker.last_round_trip_time),
        format_ms(tracker.last_jitter),
        format_ms(tracker.rtt_percentile()),
        format_min(tracker.min_round_trip_time),
        format_ms(tracker.max_round_trip_time),
        format_ms(tracker.avg_round_trip_time),
        format_ms(tracker.jitter_percentile()),
        format_min(tracker.min_jitter),
        format_ms(tracker.max_jitter),
        format_ms(tracker.avg_jitter),
    )


def build_table(stats: Sequence[StatTracker]) -> Table:
    table = Table(box=box.SIMPLE_HEAD, show_edge=False)
    for column in COLUMNS:
        table.add_column(column, justify="left" if column == "Address" else "right",
                         no_wrap=column == "Address")
    for tracker in stats:
        if tracker.reply_status is ReplyStatus.TIMED_OUT:
            table.add_row(str(tracker.hop_id), tracker.display_address,
                          Text("Request timed out", style="dim"))
            continue
        style = "red" if tracker.total_pings and tracker.total_lost == tracker.total_pings else None
        table.add_row(*stats_row(tracker), style=style)
    return table


def build_view(display_name: str, stats: Sequence[StatTracker], ping_frequency_ms: int,
               start_time: datetime, last_save: Optional[datetime]) -> Group:
    footer = Text(
        "========================================================\n"
        f"  Ping Frequency (ms):  {ping_frequency_ms}\n"
        f"  Start Time:           {start_time:%Y-%m-%d %H:%M:%S}\n"
        f"  Refreshed:            {datetime.now():%Y-%m-%d %H:%M:%S}\n"
        f"  Saved:                {f'{last_save:%Y-%m-%d %H:%M:%S}' if last_save else 'never'}\n"
        "========================================================\n"
        "     q = quit       c = clear stats\n"
        "========================================================"
    )
    return Group(Text(f"Routes for {display_name}", style="bold"), build_table(stats), footer)


class ConsoleView:
    """Redraws the console statistics, at most once per refresh period."""

    def __init__(self, engine, ping_frequency_ms: int = config.PING_FREQUENCY_MS,
                 refresh_ms: int = config.DISPLAY_FREQUENCY_MS, console: Optional[Console] = None,
                 recorder=None, clock=time.monotonic):
        self.engine = engine
        self.ping_frequency_ms = ping_frequency_ms
        self.refresh_ms = refresh_ms
        self.console = console or Console()
        self.clock = clock
        self.recorder = recorder
        self.start_time = datetime.now()
        self._last_refresh = None

    def on_cycle_complete(self):
        now = self.clock()
        if self._last_refresh is not None and (now - self._last_refresh) * 1000 < self.refresh_ms:
            return
        self._last_refresh = now
        self.render()

    @property
    def last_save(self) -> Optional[datetime]:
        return self.recorder.last_save if self.recorder is not None else None

    def render(self):
        view = build_view(self.engine.display_name, self.engine.snapshot_console(),
                          self.ping_frequency_ms, self.start_time, self.last_save)
        self.console.clear()
        self.console.print(view)
