#!/usr/bin/env python3

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, List, Optional, Sequence

import config
from echo import Echoer, reverse_lookup
from errors import InvalidConfiguration, NameResolutionFailure, ProbeError, ProbeTimeout
from models import HopRecord, ProbeSample, ReplyStatus
from stats import StatTracker


class HostnameCache:
    """
    Reverse lookups for hop addresses, run on their own pool so a slow PTR
    query never holds up a probe. Each address is looked up once; get()
    returns "" until the answer is in.
    """

    def __init__(self, lookup: Callable[[str], str], max_workers: int = config.LOOKUP_WORKERS):
        self.lookup = lookup
        self._names = {}
        self._pending = {}
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="TracePingLookup")

    def get(self, address: str) -> str:
        with self._lock:
            if address in self._names:
                return self._names[address]
            if address not in self._pending:
                self._pending[address] = self._executor.submit(self._resolve, address)
        return ""

    def _resolve(self, address):
        name = ""
        try:
            name = self.lookup(address)
        except NameResolutionFailure as e:
            logging.debug(f"{e}")
        finally:
            with self._lock:
                self._names[address] = name
                self._pending.pop(address, None)
        return name

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Blocks until every queued lookup has finished. True when none is left."""
        with self._lock:
            pending = list(self._pending.values())
        _, not_done = wait(pending, timeout=timeout)
        return not not_done


class ContinuousProber:
    """
    Probes every discovered hop once per cycle, concurrently, until stopped.

    Each cycle's results are merged into the console and persisted trackers
    under one lock, then the cycle-complete listeners are called in order on
    the probing thread. A slow listener delays the next cycle; nothing is
    buffered or dropped.
    """

    def __init__(self, echoer: Echoer, lock: Optional[threading.Lock] = None,
                 ping_timeout_ms: int = config.PING_TIMEOUT_MS,
                 resolve_hostnames: bool = config.RESOLVE_HOSTNAMES,
                 lookup: Callable[[str], str] = reverse_lookup):
        if ping_timeout_ms < 1:
            raise InvalidConfiguration("Ping timeout must be higher than 0.")
        self.echoer = echoer
        self.lock = lock or threading.Lock()
        self.ping_timeout_ms = ping_timeout_ms
        self.resolve_hostnames = resolve_hostnames
        self.lookup = lookup
        self.hostnames = HostnameCache(lookup)
        self.cycles = 0
        self._stop_event = threading.Event()
        self._listeners = []
        self._listeners_lock = threading.Lock()

    # --- Cycle-complete channel ---

    def subscribe(self, callback: Callable[[], None]):
        with self._listeners_lock:
            if callback not in self._listeners:
                self._listeners.append(callback)

    def unsubscribe(self, callback: Callable[[], None]):
        with self._listeners_lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def _notify(self):
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener()
            except Exception as e:
                logging.error(f"Cycle-complete listener {listener!r} failed: {e}")

    # --- Cancellation ---

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self):
        self._stop_event.set()

    def reset(self):
        """Cancel any running loop and install a fresh, un-raised signal."""
        self._stop_event.set()
        self._stop_event = threading.Event()

    # --- Probing ---

    @property
    def join_timeout_s(self) -> float:
        return (self.ping_timeout_ms + config.PROBE_JOIN_GRACE_MS) / 1000.0

    def probe_hop(self, hop: HopRecord) -> ProbeSample:
        """One echo to the target with TTL set to the hop's number."""
        if not hop.responded:
            return ProbeSample(hop_id=hop.hop_id, status=ReplyStatus.UNREACHABLE)

        try:
            reply = self.echoer.echo(hop.target, hop.hop_id, self.ping_timeout_ms)
        except ProbeTimeout as e:
            logging.debug(f"[{hop.target}] Hop {hop.hop_id}: {e}")
            return ProbeSample(hop_id=hop.hop_id, status=ReplyStatus.TIMED_OUT)
        except ProbeError as e:
            logging.warning(f"[{hop.target}] Hop {hop.hop_id}: {e}")
            return ProbeSample(hop_id=hop.hop_id, status=ReplyStatus.NO_REPLY)

        hostname = ""
        if self.resolve_hostnames and reply.address and reply.status.reachable:
            hostname = self.hostnames.get(reply.address)
        return ProbeSample(hop_id=hop.hop_id, status=reply.status, rtt_ms=reply.rtt_ms,
                           address=reply.address, hostname=hostname)

    def probe_cycle(self, hops: Sequence[HopRecord],
                    executor: Optional[ThreadPoolExecutor] = None) -> List[ProbeSample]:
        """
        Probes all hops in parallel and waits for every result.

        Probes still running after the join timeout are counted as timed out.
        """
        own_executor = executor is None
        if own_executor:
            executor = ThreadPoolExecutor(max_workers=max(1, len(hops)), thread_name_prefix="TracePingProbe")
        try:
            futures = {executor.submit(self.probe_hop, hop): hop for hop in hops}
            _, not_done = wait(futures, timeout=self.join_timeout_s)

            samples = []
            for future, hop in futures.items():
                if future in not_done:
                    future.cancel()
                    logging.warning(f"[{hop.target}] Hop {hop.hop_id}: probe still running after "
                                    f"{self.join_timeout_s:.1f}s, counted as lost")
                    samples.append(ProbeSample(hop_id=hop.hop_id, status=ReplyStatus.TIMED_OUT))
                    continue
                try:
                    samples.append(future.result())
                except Exception as e:
                    logging.error(f"[{hop.target}] Hop {hop.hop_id}: probe failed: {e}")
                    samples.append(ProbeSample(hop_id=hop.hop_id, status=ReplyStatus.NO_REPLY))
            return samples
        finally:
            if own_executor:
                executor.shutdown(wait=False)

    def merge(self, samples: Sequence[ProbeSample], console: Sequence[StatTracker],
              persisted: Sequence[StatTracker]):
        """Folds one cycle into both tracker arrays as a single locked step."""
        with self.lock:
            for sample in samples:
                for trackers in (console, persisted):
                    tracker = trackers[sample.hop_id - 1]
                    if sample.status.reachable:
                        tracker.record_round_trip_time(sample.rtt_ms)
                    else:
                        tracker.record_lost()
                    if sample.hostname:
                        tracker.hostname = sample.hostname

    def run(self, hops: Sequence[HopRecord], console: Sequence[StatTracker],
            persisted: Sequence[StatTracker], frequency_ms: int = config.PING_FREQUENCY_MS):
        """
        Probing loop. Blocks until stop() or reset() is called.

        Cancellation is checked before each cycle, so a cycle that has started
        always finishes, including its merge and notification.
        """
        if frequency_ms < 0:
            raise InvalidConfiguration("Ping frequency can't be negative.")
        stop_event = self._stop_event
        target = hops[0].target if hops else "?"
        logging.info(f"[{target}] Continuous probing of {len(hops)} hops started (every {frequency_ms}ms)")

        executor = ThreadPoolExecutor(max_workers=max(1, len(hops)), thread_name_prefix="TracePingProbe")
        try:
            while not stop_event.is_set():
                samples = self.probe_cycle(hops, executor)
                self.merge(samples, console, persisted)
                self.cycles += 1
                self._notify()
                stop_event.wait(frequency_ms / 1000.0)
        finally:
            executor.shutdown(wait=False)
            logging.info(f"[{target}] Continuous probing stopped after {self.cycles} cycles")
