import sqlite3
import threading

import pytest

from inventory_store.storage.sqlite.db_writer import DbWriter, WriterClosed
from inventory_store.storage.sqlite.utils import MEMORY_PATH, open_db, transaction


class _RecordingTracker:
    def __init__(self):
        self.notified = []

    def notify(self, tables):
        self.notified.append(frozenset(tables))


def _make_writer(tracker=None) -> DbWriter:
    conn = open_db(MEMORY_PATH)
    conn.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT)")
    return DbWriter(conn, tracker=tracker, name="TestWriter", close_timeout=2.0)


def test_run_returns_result_from_worker_thread():
    with _make_writer() as writer:
        name = writer.run(lambda _conn: threading.current_thread().name)
    assert name == "TestWriter"


def test_jobs_run_in_submission_order():
    with _make_writer() as writer:
        futures = [
            writer.submit(lambda conn, i=i: conn.execute("INSERT INTO t (v) VALUES (?)", (str(i),)))
            for i in range(20)
        ]
        for future in futures:
            future.result(5)
        values = writer.run(lambda conn: [r["v"] for r in conn.execute("SELECT v FROM t ORDER BY id")])
    assert values == [str(i) for i in range(20)]


def test_errors_surface_on_the_future():
    with _make_writer() as writer:
        future = writer.submit(lambda conn: conn.execute("INSERT INTO nope VALUES (1)"))
        with pytest.raises(sqlite3.OperationalError):
            future.result(5)
        # The worker keeps serving after a failed job.
        assert writer.run(lambda _conn: 42) == 42


def test_failed_transaction_rolls_back():
    def _write(conn):
        with transaction(conn):
            conn.execute("INSERT INTO t (v) VALUES ('kept?')")
            raise ValueError("boom")

    with _make_writer() as writer:
        with pytest.raises(ValueError):
            writer.run(_write)
        count = writer.run(lambda conn: conn.execute("SELECT COUNT(*) FROM t").fetchone()[0])
    assert count == 0


def test_tracker_is_notified_only_when_rows_change():
    tracker = _RecordingTracker()
    with _make_writer(tracker) as writer:
        writer.run(lambda conn: conn.execute("INSERT INTO t (v) VALUES ('a')"), invalidates=("t",))
        writer.run(lambda conn: conn.execute("UPDATE t SET v = 'b' WHERE id = 999"), invalidates=("t",))
        writer.run(lambda conn: conn.execute("SELECT * FROM t").fetchall(), invalidates=("t",))
        writer.run(lambda conn: conn.execute("DELETE FROM t"))
    assert tracker.notified == [frozenset({"t"})]


def test_run_inside_worker_executes_inline():
    with _make_writer() as writer:
        nested = writer.run(lambda _conn: writer.run(lambda _inner: "inner"))
    assert nested == "inner"


def test_barrier_waits_for_queued_work():
    seen = []
    release = threading.Event()
    with _make_writer() as writer:
        writer.submit(lambda _conn: release.wait(5))
        writer.submit(lambda _conn: seen.append("done"))
        release.set()
        writer.barrier()
        assert seen == ["done"]


def test_closed_writer_rejects_work():
    writer = _make_writer()
    writer.close()
    writer.close()

    assert writer.closed
    with pytest.raises(WriterClosed):
        writer.submit(lambda _conn: None)
    with pytest.raises(WriterClosed):
        writer.run(lambda _conn: None)


def test_close_drains_pending_jobs():
    writer = _make_writer()
    futures = [writer.submit(lambda _conn, i=i: i) for i in range(5)]
    writer.close()
    assert [future.result(5) for future in futures] == list(range(5))


def test_close_from_a_job_lets_queued_jobs_finish():
    writer = _make_writer()
    release = threading.Event()

    def _closing_job(_conn):
        release.wait(5)
        writer.close()
        return "closing"

    closing = writer.submit(_closing_job)
    queued = writer.submit(
        lambda conn: conn.execute("INSERT INTO t (v) VALUES ('after close')").lastrowid
    )
    release.set()

    assert closing.result(5) == "closing"
    assert queued.result(5) == 1
    writer._thread.join(5)
    assert not writer._thread.is_alive()
    with pytest.raises(sqlite3.ProgrammingError):
        writer.conn.execute("SELECT 1")
