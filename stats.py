import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

import config
from models import HopRecord, ReplyStatus


def percentile(values, p):
    """
    Linear-interpolated percentile of the given values.

    Args:
        values: RTT or jitter samples (any order).
        p: Fractional rank between 0 and 1 (0.98 for the 98th percentile).

    Returns:
        The interpolated value, or 0 when fewer than
        config.PERCENTILE_MIN_SAMPLES samples are available.
    """
    if len(values) < config.PERCENTILE_MIN_SAMPLES:
        return 0
    elements = sorted(values)
    real_index = p * (len(elements) - 1)
    index = int(real_index)
    frac = real_index - index
    if index + 1 < len(elements):
        return elements[index] * (1 - frac) + elements[index + 1] * frac
    return elements[index]


@dataclass
class StatTracker:
    """
    Rolling statistics for a single hop.

    Not thread-safe on its own: callers hold the engine's merge lock while
    recording or clearing.
    """
    hop_id: int
    address: Optional[str] = None
    hostname: str = ""
    reply_status: ReplyStatus = ReplyStatus.NO_REPLY
    calc_percentile: bool = config.CALC_PERCENTILE

    total_pings: int = 0
    total_lost: int = 0

    total_round_trip_time: float = 0
    min_round_trip_time: float = config.MIN_DEFAULT_VALUE
    max_round_trip_time: float = 0
    last_round_trip_time: float = 0

    last_jitter: float = 0
    total_jitter: float = 0
    min_jitter: float = config.MIN_DEFAULT_VALUE
    max_jitter: float = 0

    last_update: Optional[datetime] = None

    # Raw samples, only filled when calc_percentile is set
    rtt_list: List[float] = field(default_factory=list)
    jitter_list: List[float] = field(default_factory=list)

    @classmethod
    def for_hop(cls, hop: HopRecord, calc_percentile=config.CALC_PERCENTILE):
        return cls(hop_id=hop.hop_id, address=hop.address, hostname=hop.hostname,
                   reply_status=hop.status, calc_percentile=calc_percentile)

    @property
    def display_address(self) -> str:
        address = self.address or config.NO_RESPONSE_ADDRESS
        if self.hostname:
            return f"{self.hostname}[{address}]"
        return address

    @property
    def total_success(self) -> int:
        return self.total_pings - self.total_lost

    @property
    def lost_percentage(self) -> float:
        if self.total_pings < 1:
            return 0.0
        return self.total_lost / self.total_pings * 100

    @property
    def avg_round_trip_time(self) -> float:
        if self.total_success < 1:
            return 0.0
        return self.total_round_trip_time / self.total_success

    @property
    def avg_jitter(self) -> float:
        if self.total_success < 1:
            return 0.0
        return self.total_jitter / self.total_success

    @property
    def has_samples(self) -> bool:
        return self.total_success > 0

    def rtt_percentile(self, p=config.PERCENTILE):
        """None when percentile tracking is disabled for this tracker."""
        if not self.calc_percentile:
            return None
        return percentile(self.rtt_list, p)

    def jitter_percentile(self, p=config.PERCENTILE):
        if not self.calc_percentile:
            return None
        return percentile(self.jitter_list, p)

    def record_lost(self):
        # Latency and jitter state is left alone so a loss never shows up as a 0 ms sample
        self.total_pings += 1
        self.total_lost += 1

    def record_round_trip_time(self, rtt):
        self.last_update = datetime.now()

        self.total_pings += 1
        self.total_round_trip_time += rtt
        if self.min_round_trip_time > rtt:
            self.min_round_trip_time = rtt
        if self.max_round_trip_time < rtt:
            self.max_round_trip_time = rtt

        # First jitter is measured against the initial last RTT of 0
        jitter = abs(self.last_round_trip_time - rtt)
        if self.min_jitter > jitter:
            self.min_jitter = jitter
        if self.max_jitter < jitter:
            self.max_jitter = jitter
        self.total_jitter += jitter
        self.last_jitter = jitter

        if self.calc_percentile:
            self.rtt_list.append(rtt)
            self.jitter_list.append(jitter)

        self.last_round_trip_time = rtt

    def clear(self):
        """Reset every counter and buffer. Hop identity is kept."""
        self.total_pings = 0
        self.total_lost = 0
        self.total_round_trip_time = 0
        self.min_round_trip_time = config.MIN_DEFAULT_VALUE
        self.max_round_trip_time = 0
        self.last_round_trip_time = 0
        self.last_jitter = 0
        self.total_jitter = 0
        self.min_jitter = config.MIN_DEFAULT_VALUE
        self.max_jitter = 0
        self.last_update = None
        self.rtt_list.clear()
        self.jitter_list.clear()

    def copy(self) -> "StatTracker":
        return copy.deepcopy(self)
