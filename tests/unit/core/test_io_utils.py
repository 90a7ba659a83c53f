from __future__ import annotations

import json
import threading
from datetime import datetime
from pathlib import Path

import pytest

from wt.core.utils.io import (
    LockTimeoutError,
    acquire_file_lock,
    atomic_file,
    read_json,
    read_text,
    write_json_atomic,
    write_text,
)
from wt.core.utils.time import is_iso8601, utc_timestamp


class TestJson:
    def test_write_keeps_key_order_and_trailing_newline(self, tmp_path: Path) -> None:
        out = tmp_path / "nested" / "registry.json"
        write_json_atomic(out, {"version": 1, "allocations": {"2": {}, "1": {}}})

        text = out.read_text()
        assert text.startswith('{\n  "version": 1,\n  "allocations": {\n    "2"')
        assert text.endswith("}\n")
        assert read_json(out) == {"version": 1, "allocations": {"2": {}, "1": {}}}

    def test_missing_file(self, tmp_path: Path) -> None:
        missing = tmp_path / "absent.json"
        with pytest.raises(FileNotFoundError):
            read_json(missing)
        assert read_json(missing, default=None) is None

    def test_malformed_file_raises_even_with_default(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text("{ nope")
        with pytest.raises(json.JSONDecodeError):
            read_json(bad, default={})

    def test_racing_writers_never_leave_partial_documents(self, tmp_path: Path) -> None:
        out = tmp_path / "race.json"

        def _spin(tag: str) -> None:
            for i in range(50):
                write_json_atomic(out, {"writer": tag, "i": i})

        threads = [threading.Thread(target=_spin, args=(tag,)) for tag in ("a", "b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert json.loads(out.read_text())["writer"] in {"a", "b"}
        assert sorted(p.name for p in tmp_path.iterdir()) == ["race.json"]


class TestText:
    def test_line_endings_survive(self, tmp_path: Path) -> None:
        path = tmp_path / "apps" / "web" / ".env"
        write_text(path, "A=1\r\nB=2\n")
        assert path.read_bytes() == b"A=1\r\nB=2\n"
        assert read_text(path) == "A=1\r\nB=2\n"

    def test_failed_write_leaves_target_and_no_temp_file(self, tmp_path: Path) -> None:
        path = tmp_path / ".env"
        path.write_text("ORIGINAL=1\n")

        with pytest.raises(RuntimeError):
            with atomic_file(path) as handle:
                handle.write("PARTIAL=")
                raise RuntimeError("boom")

        assert path.read_text() == "ORIGINAL=1\n"
        assert [p.name for p in tmp_path.iterdir()] == [".env"]


class TestFileLock:
    def test_times_out_while_held(self, tmp_path: Path) -> None:
        target = tmp_path / "registry.json"
        held = threading.Event()
        release = threading.Event()

        def _hold() -> None:
            with acquire_file_lock(target, timeout=1):
                held.set()
                release.wait(5)

        holder = threading.Thread(target=_hold)
        holder.start()
        try:
            assert held.wait(5)
            with pytest.raises(LockTimeoutError):
                with acquire_file_lock(target, timeout=0.1, poll_interval=0.01):
                    pass
        finally:
            release.set()
            holder.join()

    def test_yields_sidecar_path(self, tmp_path: Path) -> None:
        with acquire_file_lock(tmp_path / "registry.json", timeout=1) as lock_path:
            assert lock_path == tmp_path / "registry.json.lock"
            assert lock_path.exists()

    @pytest.mark.parametrize("kwargs", [{"timeout": 0}, {"timeout": 1, "poll_interval": -1}])
    def test_rejects_non_positive_values(self, tmp_path: Path, kwargs) -> None:
        with pytest.raises(ValueError):
            with acquire_file_lock(tmp_path / "x", **kwargs):
                pass


def test_utc_timestamp_is_iso_utc() -> None:
    stamp = utc_timestamp()
    assert stamp.endswith("Z")
    assert is_iso8601(stamp)
    assert datetime.fromisoformat(stamp.replace("Z", "+00:00")).tzinfo is not None


@pytest.mark.parametrize(
    ("value", "valid"),
    [
        ("2025-01-01T00:00:00.000Z", True),
        ("2025-01-01T00:00:00+02:00", True),
        ("2025-01-01T00:00:00", False),
        ("2025-02-30T00:00:00Z", False),
        ("not a date", False),
    ],
)
def test_is_iso8601(value: str, valid: bool) -> None:
    assert is_iso8601(value) is valid
