#!/usr/bin/env python3

import logging
import threading
from typing import Callable, List, Optional

import config
from echo import Echoer, ScapyEchoer, resolve_target, reverse_lookup
from errors import InvalidConfiguration, ProberStopped, ProbingActive
from models import HopRecord
from prober import ContinuousProber
from stats import StatTracker
from tracer import RouteDiscoverer


class TracePing:
    """
    Traceroute plus ping.

    Finds every hop to the target once, then pings all of them in the
    background and keeps two independent sets of statistics: one for the
    console view and one for the persisted (CSV) view. Each set can be
    cleared on its own schedule.
    """

    def __init__(self, host: str, max_hops: int = config.MAX_HOPS,
                 discovery_timeout_ms: int = config.DISCOVERY_TIMEOUT_MS,
                 ping_timeout_ms: int = config.PING_TIMEOUT_MS,
                 resolve_hostnames: bool = config.RESOLVE_HOSTNAMES,
                 calc_percentile: bool = config.CALC_PERCENTILE,
                 echoer: Optional[Echoer] = None,
                 resolver: Callable[[str], str] = resolve_target,
                 lookup: Callable[[str], str] = reverse_lookup):
        if max_hops < 1:
            raise InvalidConfiguration("Max hops can't be lower than 1.")
        self.host = host
        self.address = resolver(host)
        self.max_hops = max_hops
        self.calc_percentile = calc_percentile
        self.echoer = echoer or ScapyEchoer()

        # Guards the route snapshot and both tracker arrays
        self._lock = threading.Lock()
        self._discoverer = RouteDiscoverer(self.echoer, discovery_timeout_ms, resolver=resolver,
                                           lookup=lookup if resolve_hostnames else None)
        self._prober = ContinuousProber(self.echoer, self._lock, ping_timeout_ms,
                                        resolve_hostnames=resolve_hostnames, lookup=lookup)
        self._routes: List[HopRecord] = []
        self._stats_console: List[StatTracker] = []
        self._stats_persisted: List[StatTracker] = []
        self._thread: Optional[threading.Thread] = None

    @property
    def display_name(self) -> str:
        if self.host == self.address:
            return self.address
        return f"{self.host} [{self.address}]"

    @property
    def routes(self) -> List[HopRecord]:
        with self._lock:
            return list(self._routes)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def cycles(self) -> int:
        return self._prober.cycles

    def discover(self) -> List[HopRecord]:
        """Maps the route and seeds fresh console and persisted statistics."""
        if self.running:
            raise ProbingActive("Stop or reset probing before discovering the route again.")
        hops = self._discoverer.discover(self.address, self.max_hops)
        console = [StatTracker.for_hop(hop, self.calc_percentile) for hop in hops]
        persisted = [StatTracker.for_hop(hop, self.calc_percentile) for hop in hops]
        with self._lock:
            self._routes = hops
            self._stats_console = console
            self._stats_persisted = persisted
        return list(hops)

    def start_continuous(self, frequency_ms: int = config.PING_FREQUENCY_MS):
        """Starts the probing loop on a background thread and returns."""
        if frequency_ms < 0:
            raise InvalidConfiguration("Ping frequency can't be negative.")
        if self.running:
            raise ProbingActive("Continuous probing is already running.")
        if self._prober.stopped:
            raise ProberStopped("Probing was stopped; call reset() before starting again.")
        with self._lock:
            hops, console, persisted = self._routes, self._stats_console, self._stats_persisted
        if not hops:
            raise InvalidConfiguration("Routes must be discovered before probing starts.")

        self._thread = threading.Thread(
            target=self._prober.run,
            args=(hops, console, persisted, frequency_ms),
            daemon=True,
            name="TracePingLoop",
        )
        self._thread.start()
        logging.info(f"[{self.address}] Probing thread '{self._thread.name}' started.")

    def stop(self):
        self._prober.stop()

    def reset(self):
        self._prober.reset()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Joins the probing thread. True when it has finished."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def subscribe(self, callback: Callable[[], None]):
        self._prober.subscribe(callback)

    def unsubscribe(self, callback: Callable[[], None]):
        self._prober.unsubscribe(callback)

    # Snapshots are copies taken under the merge lock so readers never see a half-merged cycle

    def snapshot_console(self) -> List[StatTracker]:
        with self._lock:
            return [tracker.copy() for tracker in self._stats_console]

    def snapshot_persisted(self) -> List[StatTracker]:
        with self._lock:
            return [tracker.copy() for tracker in self._stats_persisted]

    def clear_console(self):
        with self._lock:
            for tracker in self._stats_console:
                tracker.clear()

    def clear_persisted(self):
        with self._lock:
            for tracker in self._stats_persisted:
                tracker.clear()
