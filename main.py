#!/usr/bin/env python3

import argparse
import logging
import os
import sys
import termios
import tty
from contextlib import contextmanager

import config
from console import ConsoleView
from errors import TracePingError
from recorder import CsvRecorder
from traceping import TracePing

LOG_LEVELS = {
    "verbose": logging.DEBUG,
    "debug": logging.DEBUG,
    "information": logging.INFO,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
}


def build_argparser():
    ap = argparse.ArgumentParser(prog="traceping", description="Trace Ping - Traceroute plus ping")
    ap.add_argument("--host", required=True, help="Either hostname or ip address")
    ap.add_argument("--resolve-hostname", action="store_true", default=config.RESOLVE_HOSTNAMES,
                    help="Resolve the hostnames of the hops")
    ap.add_argument("--output-directory", default=config.OUTPUT_DIRECTORY, help="Output directory for CSV file")
    ap.add_argument("--max-hops", type=int, default=config.MAX_HOPS,
                    help=f"Maximum number of hops to trace (default: {config.MAX_HOPS})")
    ap.add_argument("--discovery-timeout", type=int, default=config.DISCOVERY_TIMEOUT_MS,
                    help="Timeout for discovery in milliseconds")
    ap.add_argument("--ping-timeout", type=int, default=config.PING_TIMEOUT_MS,
                    help="Timeout for ping in milliseconds")
    ap.add_argument("--ping-frequency", type=int, default=config.PING_FREQUENCY_MS,
                    help="Frequency of pings in milliseconds")
    ap.add_argument("--save-frequency", type=int, default=config.SAVE_FREQUENCY_S,
                    help="Frequency of saving to CSV file in seconds (0 disables the file)")
    ap.add_argument("--no-percentile", dest="calc_percentile", action="store_false",
                    default=config.CALC_PERCENTILE,
                    help="Do not keep raw samples (P98 columns show N/A, uses less memory)")
    ap.add_argument("-l", "--log-level", default=config.LOG_LEVEL, type=str.lower,
                    choices=sorted(LOG_LEVELS), help="Configure logging level")
    return ap


def configure_logging(level_name: str):
    logging.basicConfig(level=LOG_LEVELS[level_name], format=config.LOG_FORMAT)


@contextmanager
def single_keys(stream):
    """Puts a terminal stream in cbreak mode so keys arrive without Enter."""
    if not stream.isatty():
        yield
        return
    fd = stream.fileno()
    original = termios.tcgetattr(fd)
    try:
        tty.setcbreak(fd)
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, original)


def handle_keys(engine, view, stream=sys.stdin) -> bool:
    """
    Reads single-key commands: 'q' quits, 'c' clears the console stats.

    Returns:
        True when quit was requested, False when the input stream closed.
    """
    with single_keys(stream):
        while True:
            key = stream.read(1)
            if not key:
                return False
            key = key.lower()
            if key == "q":
                return True
            if key == "c":
                engine.clear_console()
                view.render()


def shutdown(engine, recorder, timeout_s: float) -> bool:
    """Stops probing, then writes the final CSV block once the loop thread is gone."""
    engine.stop()
    if not engine.wait(timeout=timeout_s):
        # The loop thread still owns the CSV writer
        logging.warning("Probing thread did not exit cleanly, skipping the final CSV save.")
        return False
    recorder.flush()
    recorder.close()
    return True


def run(args) -> int:
    try:
        engine = TracePing(args.host, max_hops=args.max_hops,
                           discovery_timeout_ms=args.discovery_timeout,
                           ping_timeout_ms=args.ping_timeout,
                           resolve_hostnames=args.resolve_hostname,
                           calc_percentile=args.calc_percentile)
    except TracePingError as e:
        logging.error(f"Could not start: {e}")
        print(f"Error: {e}")
        return 1

    print(f"Getting routes to {engine.display_name}")
    print(f"Trace hop timeout: {args.discovery_timeout}")
    hops = engine.discover()
    for hop in hops:
        print(f"{hop.hop_id:2}  {hop.display_address} : {hop.status.value}")

    recorder = CsvRecorder(engine, args.output_directory, args.save_frequency)
    try:
        recorder.open()
    except OSError as e:
        logging.error(f"Could not open CSV file '{recorder.path}': {e}")
        print(f"Error: could not open '{recorder.path}': {e}")
        return 1

    view = ConsoleView(engine, args.ping_frequency, recorder=recorder)
    engine.subscribe(recorder.on_cycle_complete)
    engine.subscribe(view.on_cycle_complete)

    try:
        engine.start_continuous(args.ping_frequency)
        if not handle_keys(engine, view):
            # No terminal input; run until interrupted
            while not engine.wait(1.0):
                pass
    except KeyboardInterrupt:
        logging.info("TracePing stopped by user.")
    except TracePingError as e:
        logging.error(f"Could not start probing: {e}")
        print(f"Error: {e}")
        return 1
    finally:
        shutdown(engine, recorder, (args.ping_timeout + config.PROBE_JOIN_GRACE_MS) / 1000.0 + 1)
    return 0


def main(argv=None) -> int:
    args = build_argparser().parse_args(argv)
    configure_logging(args.log_level)
    # NOTE: Root privileges (or CAP_NET_RAW) are required for Scapy raw sockets.
    if hasattr(os, "geteuid") and os.geteuid() != 0:
        logging.warning("Scapy needs raw-socket privileges. Run with sudo if every probe fails.")
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
