# tests/conftest.py
import threading
from collections import deque

import pytest

from echo import Echoer
from errors import ProbeTimeout
from models import EchoReply, HopRecord, ReplyStatus

TARGET = "8.8.8.8"


class FakeEchoer(Echoer):
    """
    replies: dict[ttl] -> outcome returned on every call for that TTL
    script:  dict[ttl] -> list of outcomes consumed first, one per call
    An outcome is an EchoReply, an exception instance to raise, or None for a timeout.
    TTLs with nothing configured time out.
    """
    def __init__(self, replies=None, script=None):
        self.replies = dict(replies or {})
        self.script = {ttl: deque(v) for ttl, v in (script or {}).items()}
        self.calls = []
        self.lock = threading.Lock()

    def echo(self, address, ttl, timeout_ms):
        with self.lock:
            self.calls.append((address, ttl, timeout_ms))
            dq = self.script.get(ttl)
            outcome = dq.popleft() if dq else self.replies.get(ttl)
        if outcome is None:
            raise ProbeTimeout(f"No reply from {address} (TTL {ttl}) within {timeout_ms}ms")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def path_replies(hop_count, target=TARGET, rtt_ms=10.0):
    """Replies for a route reaching the target at hop_count."""
    replies = {}
    for ttl in range(1, hop_count):
        replies[ttl] = EchoReply(ReplyStatus.TTL_EXPIRED, f"10.0.0.{ttl}", rtt_ms + ttl)
    replies[hop_count] = EchoReply(ReplyStatus.SUCCESS, target, rtt_ms + hop_count)
    return replies


def make_hops(hop_count, target=TARGET, dark=()):
    hops = []
    for ttl in range(1, hop_count + 1):
        if ttl in dark:
            hops.append(HopRecord(ttl, None, target, ReplyStatus.TIMED_OUT))
        elif ttl == hop_count:
            hops.append(HopRecord(ttl, target, target, ReplyStatus.SUCCESS))
        else:
            hops.append(HopRecord(ttl, f"10.0.0.{ttl}", target, ReplyStatus.TTL_EXPIRED))
    return hops


def no_lookup(address):
    raise AssertionError("reverse lookup should not be called")


@pytest.fixture
def echoer():
    return FakeEchoer(replies=path_replies(4))
