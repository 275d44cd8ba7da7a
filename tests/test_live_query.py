import gc
import sqlite3
import threading
import weakref

import pytest

from inventory_store.live_query import LiveQuery, SubscriptionClosed
from inventory_store.models import Item
from inventory_store.storage.sqlite.db_writer import WriterClosed

SUGAR = Item(id=1, name="Sugar", price=2.50, quantity=10)
APPLE = Item(id=2, name="Apple", price=0.99, quantity=50)

TIMEOUT = 5
QUIET = 0.3


def _names(items):
    return [item.name for item in items]


def test_first_snapshot_is_ordered_by_name(dao):
    dao.insert(SUGAR).result(TIMEOUT)
    dao.insert(APPLE).result(TIMEOUT)

    with dao.get_all_items().subscribe() as subscription:
        assert subscription.get(timeout=TIMEOUT) == [APPLE, SUGAR]


def test_all_items_follow_inserts_updates_and_deletes(dao):
    with dao.get_all_items().subscribe() as subscription:
        assert subscription.get(timeout=TIMEOUT) == []

        dao.insert(SUGAR).result(TIMEOUT)
        assert subscription.get(timeout=TIMEOUT) == [SUGAR]

        dao.insert(APPLE).result(TIMEOUT)
        assert subscription.get(timeout=TIMEOUT) == [APPLE, SUGAR]

        cheaper = SUGAR.model_copy(update={"price": 1.99})
        dao.update(cheaper).result(TIMEOUT)
        assert subscription.get(timeout=TIMEOUT) == [APPLE, cheaper]

        dao.delete(APPLE).result(TIMEOUT)
        assert subscription.get(timeout=TIMEOUT) == [cheaper]


def test_snapshots_stay_sorted(dao):
    names = ["pear", "Banana", "apple", "Cherry", "banana", "Apple"]
    dao.insert_all(
        Item(name=name, price=1.0, quantity=i) for i, name in enumerate(names)
    ).result(TIMEOUT)

    snapshot = dao.get_all_items().first(timeout=TIMEOUT)
    assert _names(snapshot) == sorted(names)


def test_ignored_writes_do_not_emit(dao):
    dao.insert(SUGAR).result(TIMEOUT)

    with dao.get_all_items().subscribe() as subscription:
        assert subscription.get(timeout=TIMEOUT) == [SUGAR]

        dao.insert(Item(id=1, name="Duplicate", price=1.0, quantity=1)).result(TIMEOUT)
        dao.update(Item(id=42, name="Ghost", price=1.0, quantity=1)).result(TIMEOUT)
        dao.delete(Item(id=99, name="Nothing", price=0.0, quantity=0)).result(TIMEOUT)

        with pytest.raises(TimeoutError):
            subscription.get(timeout=QUIET)


def test_get_item_waits_for_the_row(dao):
    with dao.get_item(1).subscribe() as subscription:
        with pytest.raises(TimeoutError):
            subscription.get(timeout=QUIET)

        dao.insert(SUGAR).result(TIMEOUT)
        assert subscription.get(timeout=TIMEOUT) == SUGAR


def test_get_item_ignores_other_rows(dao):
    dao.insert(SUGAR).result(TIMEOUT)

    with dao.get_item(1).subscribe() as subscription:
        assert subscription.get(timeout=TIMEOUT) == SUGAR

        dao.insert(APPLE).result(TIMEOUT)
        with pytest.raises(TimeoutError):
            subscription.get(timeout=QUIET)

        restocked = SUGAR.model_copy(update={"quantity": 25})
        dao.update(restocked).result(TIMEOUT)
        assert subscription.get(timeout=TIMEOUT) == restocked


def test_get_item_reemits_after_delete_and_reinsert(dao):
    dao.insert(SUGAR).result(TIMEOUT)

    with dao.get_item(1).subscribe() as subscription:
        assert subscription.get(timeout=TIMEOUT) == SUGAR
        dao.delete(SUGAR).result(TIMEOUT)
        dao.insert(SUGAR).result(TIMEOUT)
        assert subscription.get(timeout=TIMEOUT) == SUGAR


def test_live_query_is_restartable(dao):
    dao.insert(SUGAR).result(TIMEOUT)
    query = dao.get_all_items()

    for _ in range(2):
        subscription = iter(query)
        assert next(subscription) == [SUGAR]
        subscription.cancel()


def test_cancel_only_stops_that_subscription(dao):
    query = dao.get_all_items()
    cancelled = query.subscribe()
    kept = query.subscribe()
    assert cancelled.get(timeout=TIMEOUT) == []
    assert kept.get(timeout=TIMEOUT) == []

    cancelled.cancel()
    dao.insert(SUGAR).result(TIMEOUT)

    assert kept.get(timeout=TIMEOUT) == [SUGAR]
    with pytest.raises(SubscriptionClosed):
        cancelled.get(timeout=TIMEOUT)
    assert list(cancelled) == []
    kept.cancel()


def test_cancel_wakes_blocked_consumer(dao):
    subscription = dao.get_item(7).subscribe()
    collected = []

    def consume():
        collected.extend(subscription)

    consumer = threading.Thread(target=consume)
    consumer.start()
    subscription.cancel()
    consumer.join(TIMEOUT)

    assert not consumer.is_alive()
    assert collected == []


def test_query_error_terminates_only_its_subscription(database, dao):
    def broken(conn):
        return conn.execute("SELECT * FROM missing_table").fetchall()

    failing = LiveQuery(database.writer, database.tracker, ("items",), broken, name="broken")

    with dao.get_all_items().subscribe() as healthy:
        assert healthy.get(timeout=TIMEOUT) == []
        subscription = failing.subscribe()

        with pytest.raises(sqlite3.OperationalError):
            subscription.get(timeout=TIMEOUT)
        with pytest.raises(SubscriptionClosed):
            subscription.get(timeout=TIMEOUT)
        assert subscription.cancelled

        dao.insert(SUGAR).result(TIMEOUT)
        assert healthy.get(timeout=TIMEOUT) == [SUGAR]


def test_observe_pushes_snapshots_to_callback(dao):
    received = []
    done = threading.Event()

    def on_items(items):
        received.append(_names(items))
        if len(received) == 3:
            done.set()

    subscription = dao.get_all_items().observe(on_items)
    dao.insert(SUGAR).result(TIMEOUT)
    dao.insert(APPLE).result(TIMEOUT)

    assert done.wait(TIMEOUT)
    subscription.cancel()
    assert received == [[], ["Sugar"], ["Apple", "Sugar"]]


def test_unreferenced_observer_keeps_receiving_snapshots(dao):
    received = []
    first = threading.Event()
    second = threading.Event()

    def on_items(items):
        received.append(_names(items))
        (first if len(received) == 1 else second).set()

    # The returned subscription is deliberately dropped.
    dao.get_all_items().observe(on_items)
    assert first.wait(TIMEOUT)

    gc.collect()
    dao.insert(SUGAR).result(TIMEOUT)

    assert second.wait(TIMEOUT)
    assert received == [[], ["Sugar"]]


def test_cancelled_observer_is_released(database, dao):
    subscription = dao.get_all_items().observe(lambda _items: None)
    database.writer.barrier()
    ref = weakref.ref(subscription)

    subscription.cancel()
    database.writer.barrier()
    del subscription
    gc.collect()

    assert ref() is None


def test_failing_callback_cancels_its_subscription(dao):
    calls = []

    def explode(items):
        calls.append(items)
        raise ValueError("render failed")

    subscription = dao.get_all_items().observe(explode)
    dao.insert(SUGAR).result(TIMEOUT)
    dao.insert(APPLE).result(TIMEOUT)

    assert calls == [[]]
    assert subscription.cancelled


def test_closing_database_ends_subscriptions(database, dao):
    subscription = dao.get_all_items().subscribe()
    assert subscription.get(timeout=TIMEOUT) == []

    database.close()

    assert subscription.cancelled
    assert list(subscription) == []
    with pytest.raises(WriterClosed):
        dao.get_all_items().subscribe()
