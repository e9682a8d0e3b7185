import builtins
import io
from pathlib import Path

import pytest

from alertscan.errors import TargetUnavailable
from alertscan.matcher import AggregationContext, LineMatcher
from alertscan.scanner import BatchScanner, read_lines
from alertscan.sink import MatchSink
from alertscan.stats import StopFlag


def _scanner(tmp_path: Path, **kw):
    ctx = AggregationContext()
    sink = MatchSink(str(tmp_path / "error_log.txt")).open()
    return ctx, sink, BatchScanner(LineMatcher(ctx, sink, out=lambda s: None), **kw)


def test_directory_scan_example(tmp_path: Path):
    logs = tmp_path / "logs"
    logs.mkdir()
    (logs / "app.log").write_text("INFO start\nERROR disk full\nWARN low memory\n", encoding="utf-8")
    ctx, sink, scanner = _scanner(tmp_path)
    assert scanner.scan_path(logs) == 1
    sink.close()
    assert ctx.total_lines == 3
    assert ctx.registry.counts() == {"ERROR": 1, "WARN": 1, "CRITICAL": 0}
    records = (tmp_path / "error_log.txt").read_text(encoding="utf-8").splitlines()
    app = str(logs / "app.log")
    assert records == [f"Error found in {app}: ERROR disk full", f"Error found in {app}: WARN low memory"]


def test_ineligible_entries_are_never_opened(tmp_path: Path, monkeypatch):
    logs = tmp_path / "logs"
    logs.mkdir()
    (logs / "image.png").write_bytes(b"ERROR\n")
    (logs / "a.txt").write_text("ERROR\n", encoding="utf-8")
    sub = logs / "nested.log"
    sub.mkdir()
    (sub / "inner.log").write_text("ERROR\n", encoding="utf-8")
    opened = []
    real_open = builtins.open

    def spy(path, *a, **kw):
        opened.append(Path(path).name)
        return real_open(path, *a, **kw)

    monkeypatch.setattr("alertscan.scanner.open", spy, raising=False)
    ctx, sink, scanner = _scanner(tmp_path)
    scanner.scan_path(logs)
    sink.close()
    assert opened == ["a.txt"]
    assert ctx.registry.count("ERROR") == 1


def test_single_file_lines_in_order(tmp_path: Path, capsys):
    f = tmp_path / "one.log"
    f.write_text("WARN first\nCRITICAL second\n", encoding="utf-8")
    ctx = AggregationContext()
    sink = MatchSink(str(tmp_path / "sink.txt")).open()
    scanner = BatchScanner(LineMatcher(ctx, sink))
    scanner.scan_path(f)
    sink.close()
    out = capsys.readouterr().out
    assert out.index("WARN first") < out.index("CRITICAL second")
    assert f"Error found in {f}: WARN first\n" in out


def test_missing_target_raises(tmp_path: Path):
    ctx, sink, scanner = _scanner(tmp_path)
    with pytest.raises(TargetUnavailable):
        scanner.scan_path(tmp_path / "absent.log")
    sink.close()
    assert ctx.total_lines == 0


def test_unopenable_file_in_directory_is_skipped(tmp_path: Path, monkeypatch):
    logs = tmp_path / "logs"
    logs.mkdir()
    (logs / "bad.log").write_text("ERROR\n", encoding="utf-8")
    (logs / "good.log").write_text("ERROR\n", encoding="utf-8")
    real_open = builtins.open

    def flaky(path, *a, **kw):
        if Path(path).name == "bad.log":
            raise PermissionError("denied")
        return real_open(path, *a, **kw)

    monkeypatch.setattr("alertscan.scanner.open", flaky, raising=False)
    ctx, sink, scanner = _scanner(tmp_path)
    assert scanner.scan_path(logs) == 1
    sink.close()
    assert ctx.registry.count("ERROR") == 1


def test_long_lines_are_truncated():
    data = b"A" * 10 + b"ERROR tail\n" + b"short\n"
    lines = list(read_lines(io.BytesIO(data), max_len=8))
    assert lines == [b"AAAAAAAA\n", b"short\n"]


def test_truncated_line_does_not_match_dropped_text(tmp_path: Path):
    f = tmp_path / "long.log"
    f.write_bytes(b"x" * 20 + b" ERROR\nERROR ok\n")
    ctx, sink, scanner = _scanner(tmp_path, max_line_length=16)
    scanner.scan_path(f)
    sink.close()
    assert ctx.total_lines == 2
    assert ctx.registry.count("ERROR") == 1


def test_stop_flag_ends_scan_early(tmp_path: Path):
    f = tmp_path / "app.log"
    f.write_text("ERROR\n" * 5, encoding="utf-8")
    stop = StopFlag()
    stop.set()
    ctx, sink, scanner = _scanner(tmp_path, stop=stop)
    scanner.scan_path(f)
    sink.close()
    assert ctx.total_lines == 0


class _FailingReader(io.BytesIO):
    """Yields one line, then fails like a disk read error."""

    def __init__(self, data: bytes):
        super().__init__(data)
        self.calls = 0

    def readline(self, size=-1):
        self.calls += 1
        if self.calls > 1:
            raise OSError(5, "Input/output error")
        return super().readline(size)


def test_read_error_stops_file_but_scan_continues(tmp_path: Path, monkeypatch):
    logs = tmp_path / "logs"
    logs.mkdir()
    (logs / "broken.log").write_text("ERROR one\nERROR two\nERROR three\n", encoding="utf-8")
    (logs / "fine.log").write_text("WARN ok\n", encoding="utf-8")
    real_open = builtins.open

    def failing(path, *a, **kw):
        if Path(path).name == "broken.log":
            with real_open(path, "rb") as fh:
                return _FailingReader(fh.read())
        return real_open(path, *a, **kw)

    monkeypatch.setattr("alertscan.scanner.open", failing, raising=False)
    ctx, sink, scanner = _scanner(tmp_path)
    assert scanner.scan_path(logs) == 2
    sink.close()
    assert ctx.registry.count("ERROR") == 1
    assert ctx.registry.count("WARN") == 1
    assert ctx.total_lines == 2


def test_ineligible_top_level_file_is_not_scanned(tmp_path: Path, monkeypatch):
    f = tmp_path / "app.out"
    f.write_text("ERROR hidden\n", encoding="utf-8")
    opened = []
    monkeypatch.setattr("alertscan.scanner.open", lambda *a, **kw: opened.append(a), raising=False)
    ctx, sink, scanner = _scanner(tmp_path)
    assert scanner.scan_path(f) == 0
    sink.close()
    assert opened == []
    assert ctx.total_lines == 0


def test_non_utf8_bytes_survive_into_sink(tmp_path: Path):
    f = tmp_path / "latin.log"
    f.write_bytes(b"ERROR caf\xe9 down\n")
    ctx, sink, scanner = _scanner(tmp_path)
    scanner.scan_path(f)
    sink.close()
    assert (tmp_path / "error_log.txt").read_bytes() == f"Error found in {f}: ".encode() + b"ERROR caf\xe9 down\n"


def test_zero_line_length_is_rejected(tmp_path: Path):
    with pytest.raises(ValueError):
        _scanner(tmp_path, max_line_length=0)
