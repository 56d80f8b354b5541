from dataclasses import dataclass
from enum import Enum
from typing import Optional

import config


class ReplyStatus(Enum):
    SUCCESS = "success"
    TTL_EXPIRED = "ttl_expired"
    TIMED_OUT = "timed_out"
    NO_REPLY = "no_reply"        # any other failure or unexpected ICMP type
    UNREACHABLE = "unreachable"  # hop never answered during discovery, not probed

    @property
    def reachable(self) -> bool:
        """True when the reply carries a meaningful round trip time."""
        return self in (ReplyStatus.SUCCESS, ReplyStatus.TTL_EXPIRED)


@dataclass(frozen=True)
class HopRecord:
    """One hop found by route discovery. Fixed for the rest of the session."""
    hop_id: int
    address: Optional[str]
    target: str
    status: ReplyStatus
    hostname: str = ""

    @property
    def responded(self) -> bool:
        return self.status.reachable and self.address is not None

    @property
    def display_address(self) -> str:
        return self.address or config.NO_RESPONSE_ADDRESS


@dataclass
class EchoReply:
    status: ReplyStatus
    address: Optional[str]
    rtt_ms: float = 0.0


@dataclass
class ProbeSample:
    """Result of probing one hop in one cycle. Discarded after the merge."""
    hop_id: int
    status: ReplyStatus
    rtt_ms: float = 0.0
    address: Optional[str] = None
    hostname: str = ""
