#!/usr/bin/env python3

import csv
import logging
import re
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

import config
from console import COLUMNS, stats_row

CSV_HEADER = ("Date",) + COLUMNS


def sanitize_filename(s: str) -> str:
    """Make a safe filename part from an IP/hostname."""
    return re.sub(r"[^A-Za-z0-9\.\-_]", "_", s)


def csv_file_path(output_directory, host: str, day: Optional[datetime] = None) -> Path:
    day = day or datetime.now()
    name = config.CSV_FILE_TEMPLATE.format(host=sanitize_filename(host), date=day.strftime("%Y-%m-%d"))
    return Path(output_directory) / name


class CsvRecorder:
    """
    Appends the persisted statistics to a CSV file on the first cycle and then
    every save_frequency_s seconds. The persisted view is cleared after each
    successful write, so every block covers one save period.
    """

    def __init__(self, engine, output_directory=config.OUTPUT_DIRECTORY,
                 save_frequency_s: int = config.SAVE_FREQUENCY_S, clock=time.monotonic):
        self.engine = engine
        self.save_frequency_s = save_frequency_s
        self.clock = clock
        self.path = csv_file_path(output_directory, engine.host)
        self.last_save: Optional[datetime] = None
        self._last_flush = None
        self._file = None
        self._writer = None

    @property
    def enabled(self) -> bool:
        return self.save_frequency_s > 0

    def open(self):
        if not self.enabled:
            logging.info("CSV saving disabled (save frequency is 0).")
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.path.open("a", newline="", encoding="utf-8")
        self._writer = csv.writer(self._file, quoting=csv.QUOTE_ALL)
        self._writer.writerow(CSV_HEADER)
        self._file.flush()
        logging.info(f"Saving statistics to '{self.path}' every {self.save_frequency_s}s")

    def on_cycle_complete(self):
        if self._writer is None:
            return
        now = self.clock()
        if self._last_flush is None or now - self._last_flush > self.save_frequency_s:
            self.flush()

    def flush(self):
        if self._writer is None:
            return
        stats = self.engine.snapshot_persisted()
        try:
            for tracker in stats:
                date = tracker.last_update.strftime("%Y-%m-%d %H:%M:%S") if tracker.last_update else ""
                self._writer.writerow((date,) + stats_row(tracker))
            self._file.flush()
        except OSError as e:
            # Keep the persisted view so the next flush still covers these samples
            logging.error(f"Could not write statistics to '{self.path}': {e}")
            return
        self._last_flush = self.clock()
        self.last_save = datetime.now()
        self.engine.clear_persisted()
        logging.debug(f"Saved {len(stats)} hops to '{self.path}'")

    def close(self):
        if self._file is not None:
            self._file.close()
            self._file = None
            self._writer = None
