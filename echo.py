#!/usr/bin/env python3

import ipaddress
import logging
import os
import random
import socket
import time
from abc import ABC, abstractmethod

import config
from errors import InvalidTarget, NameResolutionFailure, ProbeError, ProbeTimeout
from models import EchoReply, ReplyStatus

try:
    from scapy.all import IP, ICMP, Raw, sr1, conf
    from scapy.error import Scapy_Exception
    conf.verb = config.SCAPY_VERBOSITY
except ImportError:
    logging.error("Scapy is not installed or import failed. Please run: pip install scapy")
    raise
except OSError as e:
    logging.error(f"Error initializing Scapy in echo module: {e}")
    raise

ICMP_ECHO_REPLY = 0
ICMP_TIME_EXCEEDED = 11


class Echoer(ABC):
    """Network echo primitive: one ICMP echo request with a given TTL."""

    @abstractmethod
    def echo(self, address: str, ttl: int, timeout_ms: int) -> EchoReply:
        """
        Send exactly one echo request and wait for the reply.

        Raises:
            ProbeTimeout: nothing came back within timeout_ms.
            ProbeError: the request could not be sent.
        """
        raise NotImplementedError


class ScapyEchoer(Echoer):
    """
    Sends ICMP echo requests with Scapy. Needs raw-socket privileges (root or
    CAP_NET_RAW), otherwise every attempt fails with ProbeError.
    """

    def __init__(self, payload: bytes = config.ECHO_PAYLOAD, timer=time.perf_counter):
        self.payload = payload
        self.timer = timer
        self.ident = os.getpid() & 0xFFFF

    def _build_packet(self, address, ttl):
        # Random sequence numbers keep concurrent probes to the same target apart
        seq = random.randint(1, 0xFFFF)
        return IP(dst=address, ttl=ttl, flags="DF") / ICMP(id=self.ident, seq=seq) / Raw(load=self.payload)

    def echo(self, address: str, ttl: int, timeout_ms: int) -> EchoReply:
        packet = self._build_packet(address, ttl)
        start = self.timer()
        try:
            reply = sr1(packet, timeout=timeout_ms / 1000.0, verbose=config.SCAPY_VERBOSITY)
        except (OSError, Scapy_Exception) as e:
            raise ProbeError(f"Could not send echo to {address} (TTL {ttl}): {e}. Check permissions.") from e
        elapsed_ms = (self.timer() - start) * 1000.0

        if reply is None:
            raise ProbeTimeout(f"No reply from {address} (TTL {ttl}) within {timeout_ms}ms")

        responder = reply[IP].src if IP in reply else None
        icmp_type = reply[ICMP].type if ICMP in reply else None
        if icmp_type == ICMP_ECHO_REPLY:
            status = ReplyStatus.SUCCESS
        elif icmp_type == ICMP_TIME_EXCEEDED:
            status = ReplyStatus.TTL_EXPIRED
        else:
            status = ReplyStatus.NO_REPLY
        return EchoReply(status=status, address=responder, rtt_ms=elapsed_ms)


def resolve_target(host: str) -> str:
    """Resolve a hostname or IPv4 literal to an IPv4 address string."""
    if not host:
        raise InvalidTarget("Host name is required")
    try:
        return str(ipaddress.IPv4Address(host))
    except ipaddress.AddressValueError:
        pass
    try:
        infos = socket.getaddrinfo(host, None, socket.AF_INET)
    except (socket.gaierror, UnicodeError) as e:
        raise InvalidTarget(f"{host} is not a valid address: {e}") from e
    if not infos:
        raise InvalidTarget(f"{host} is not a valid address.")
    return infos[0][4][0]


def reverse_lookup(address: str) -> str:
    """Hostname registered for an address (PTR record)."""
    try:
        return socket.gethostbyaddr(address)[0]
    except (socket.herror, socket.gaierror, OSError) as e:
        raise NameResolutionFailure(f"No host name for {address}: {e}") from e
