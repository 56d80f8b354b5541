# tests/test_recorder.py
import csv
from datetime import datetime

from recorder import CSV_HEADER, CsvRecorder, csv_file_path, sanitize_filename
from stats import StatTracker


class FakeEngine:
    host = "example.com"

    def __init__(self):
        self.stats = [StatTracker(hop_id=1, address="10.0.0.1"), StatTracker(hop_id=2, address="10.0.0.2")]
        self.cleared = 0

    def snapshot_persisted(self):
        return [t.copy() for t in self.stats]

    def clear_persisted(self):
        self.cleared += 1
        for t in self.stats:
            t.clear()


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def read_rows(path):
    with path.open(newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


def test_file_name():
    path = csv_file_path("/tmp/out", "my host/1", datetime(2024, 3, 9))
    assert path.name == "traceping-my_host_1-2024-03-09.csv"
    assert sanitize_filename("10.0.0.1") == "10.0.0.1"


def test_first_cycle_flushes_and_clears(tmp_path):
    engine = FakeEngine()
    engine.stats[0].record_round_trip_time(12)
    clock = FakeClock()
    recorder = CsvRecorder(engine, tmp_path, save_frequency_s=60, clock=clock)
    recorder.open()

    recorder.on_cycle_complete()
    recorder.close()

    rows = read_rows(recorder.path)
    assert rows[0] == list(CSV_HEADER)
    assert len(rows) == 3
    assert rows[1][1:4] == ["1", "10.0.0.1", "1"]
    assert rows[1][0] != ""
    assert rows[2][0] == ""  # hop 2 never answered
    assert engine.cleared == 1
    assert recorder.last_save is not None


def test_flush_waits_for_save_period(tmp_path):
    engine = FakeEngine()
    clock = FakeClock()
    recorder = CsvRecorder(engine, tmp_path, save_frequency_s=60, clock=clock)
    recorder.open()

    recorder.on_cycle_complete()
    clock.now = 30
    recorder.on_cycle_complete()
    assert engine.cleared == 1

    clock.now = 61
    recorder.on_cycle_complete()
    assert engine.cleared == 2
    recorder.close()
    assert len(read_rows(recorder.path)) == 1 + 2 * 2


def test_header_written_per_session(tmp_path):
    for _ in range(2):
        recorder = CsvRecorder(FakeEngine(), tmp_path, save_frequency_s=60)
        recorder.open()
        recorder.close()
    rows = read_rows(recorder.path)
    assert rows == [list(CSV_HEADER), list(CSV_HEADER)]


def test_zero_frequency_disables_file(tmp_path):
    engine = FakeEngine()
    recorder = CsvRecorder(engine, tmp_path, save_frequency_s=0)
    recorder.open()
    recorder.on_cycle_complete()
    recorder.flush()
    recorder.close()

    assert not recorder.enabled
    assert not recorder.path.exists()
    assert engine.cleared == 0
