#!/usr/bin/env python3

import logging
from typing import Callable, List, Optional

import config
from echo import Echoer, resolve_target
from errors import InvalidConfiguration, NameResolutionFailure, ProbeError, ProbeTimeout
from models import HopRecord, ReplyStatus


class RouteDiscoverer:
    """
    Maps the route to a target by sending one echo per TTL, starting at 1,
    and recording whichever router answers. Strictly sequential and blocking.
    """

    def __init__(self, echoer: Echoer, timeout_ms: int = config.DISCOVERY_TIMEOUT_MS,
                 resolver: Callable[[str], str] = resolve_target,
                 lookup: Optional[Callable[[str], str]] = None):
        if timeout_ms < 1:
            raise InvalidConfiguration("Discovery timeout must be higher than 0.")
        self.echoer = echoer
        self.timeout_ms = timeout_ms
        self.resolver = resolver
        self.lookup = lookup # Reverse DNS, only when host names are wanted

    def _hostname(self, address):
        if self.lookup is None or address is None:
            return ""
        try:
            return self.lookup(address)
        except NameResolutionFailure as e:
            logging.debug(f"Discovery: {e}")
            return ""

    def _probe_ttl(self, address, ttl) -> HopRecord:
        try:
            reply = self.echoer.echo(address, ttl, self.timeout_ms)
        except ProbeTimeout:
            logging.info(f"[{address}] {ttl:2}  * : Request timed out ({self.timeout_ms}ms)")
            return HopRecord(hop_id=ttl, address=None, target=address, status=ReplyStatus.TIMED_OUT)
        except ProbeError as e:
            logging.warning(f"[{address}] {ttl:2}  * : {e}")
            return HopRecord(hop_id=ttl, address=None, target=address, status=ReplyStatus.NO_REPLY)

        if reply.status.reachable and reply.address:
            logging.info(f"[{address}] {ttl:2}  {reply.address} : Replied ({reply.rtt_ms:.0f}ms)")
            return HopRecord(hop_id=ttl, address=reply.address, target=address, status=reply.status,
                             hostname=self._hostname(reply.address))

        logging.info(f"[{address}] {ttl:2}  * : {reply.status.value}")
        return HopRecord(hop_id=ttl, address=None, target=address, status=reply.status)

    def discover(self, target: str, max_hops: int = config.MAX_HOPS) -> List[HopRecord]:
        """
        Runs the TTL sweep.

        Args:
            target: Host name or IPv4 address to trace to.
            max_hops: Highest TTL to try (at least 1).

        Returns:
            Hop records ordered by hop number. The list stops at the hop that
            answered with an echo reply, or has max_hops entries when the
            destination was never reached.

        Raises:
            InvalidConfiguration: max_hops is lower than 1.
            InvalidTarget: target does not resolve.
        """
        if max_hops < 1:
            raise InvalidConfiguration("Max hops can't be lower than 1.")
        address = self.resolver(target)

        logging.info(f"[{address}] Tracing route to {target} over a maximum of {max_hops} hops "
                     f"(timeout {self.timeout_ms}ms)...")
        hops = []
        for ttl in range(1, max_hops + 1):
            hop = self._probe_ttl(address, ttl)
            hops.append(hop)
            if hop.status is ReplyStatus.SUCCESS:
                logging.info(f"[{address}] Trace complete: destination reached at hop {ttl}")
                break
        else:
            logging.warning(f"[{address}] Destination not reached within {max_hops} hops")
        return hops
