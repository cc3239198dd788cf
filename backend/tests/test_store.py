import threading

import fakeredis
import pytest

from hiscores.errors import StoreUnavailable
from hiscores.services.ranking import encode_rank
from hiscores.services.store import RedisHiscoreStore

T = 1349049600000


def _names(store, board='b1'):
    return [name for name, _ in store.top_range(board, 0, -1)]


def test_insert_and_read_ascending(store):
    assert store.conditional_insert('b1', encode_rank(5, T), 'Bob', '[]')
    assert store.conditional_insert('b1', encode_rank(3, T), 'Ann', '[]')
    assert store.conditional_insert('b1', encode_rank(9, T), 'Cid', '[]')
    rows = store.top_range('b1', 0, 6)
    assert [name for name, _ in rows] == ['Ann', 'Bob', 'Cid']
    assert rows[0][1] == encode_rank(3, T)


def test_better_rank_replaces_same_name_in_either_order():
    for order in (((10, T), (8, T + 1)), ((8, T + 1), (10, T))):
        client = fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
        store = RedisHiscoreStore(client)
        for n_rotations, ts in order:
            store.conditional_insert('b1', encode_rank(n_rotations, ts), 'x', '[]')
        assert store.top_range('b1', 0, -1) == [('x', encode_rank(8, T + 1))]


def test_worse_or_equal_rank_is_ignored(store, redis_client):
    rank = encode_rank(4, T)
    assert store.conditional_insert('b1', rank, 'Ann', '["first"]')
    assert not store.conditional_insert('b1', rank, 'Ann', '["again"]')
    assert not store.conditional_insert('b1', encode_rank(6, T + 5), 'Ann', '["worse"]')
    assert redis_client.hget(store.rotations_key('b1'), 'Ann') == '["first"]'


def test_same_move_count_newer_entry_wins(store):
    store.conditional_insert('b1', encode_rank(4, T), 'Ann', '[]')
    assert store.conditional_insert('b1', encode_rank(4, T + 1000), 'Ann', '[]')
    assert store.top_range('b1', 0, -1) == [('Ann', encode_rank(4, T + 1000))]


def test_distinct_names_and_boards_are_independent(store):
    store.conditional_insert('b1', encode_rank(4, T), 'Ann', '[]')
    store.conditional_insert('b1', encode_rank(4, T + 1), 'Bob', '[]')
    store.conditional_insert('b2', encode_rank(1, T), 'Ann', '[]')
    # Newer of two equal move counts comes first
    assert _names(store, 'b1') == ['Bob', 'Ann']
    assert _names(store, 'b2') == ['Ann']


def test_trim_keeps_retained_size_and_drops_rotations(redis_client):
    store = RedisHiscoreStore(redis_client, retained_size=7)
    for i in range(10):
        store.conditional_insert('b1', encode_rank(i, T), f"p{i}", f'["{i}"]')
    assert _names(store) == [f"p{i}" for i in range(7)]
    assert redis_client.hlen(store.rotations_key('b1')) == 7
    assert redis_client.hget(store.rotations_key('b1'), 'p9') is None
    # An entry too weak for the retained range is not stored
    assert not store.conditional_insert('b1', encode_rank(50, T), 'late', '[]')
    assert 'late' not in _names(store)


def test_retained_size_must_cover_window(redis_client):
    with pytest.raises(ValueError):
        RedisHiscoreStore(redis_client, retained_size=6)


def test_unavailable_write_is_queued_and_replayed(store, redis_server):
    calls = []
    store.on_reconnect(lambda: calls.append(_names(store)))

    redis_server.connected = False
    with pytest.raises(StoreUnavailable) as excinfo:
        store.conditional_insert('b1', encode_rank(3, T), 'Ann', '[]')
    assert excinfo.value.queued
    assert store.pending_writes == 1
    assert store.check_connection() is False
    assert calls == []

    redis_server.connected = True
    assert store.check_connection() is True
    assert store.pending_writes == 0
    # Listeners run after the replay, so they see the queued write
    assert calls == [['Ann']]
    # No transition, no second notification
    store.check_connection()
    assert len(calls) == 1


def test_offline_queue_is_bounded(redis_client, redis_server):
    store = RedisHiscoreStore(redis_client, offline_queue_size=2)
    redis_server.connected = False
    for i in range(3):
        with pytest.raises(StoreUnavailable):
            store.conditional_insert('b1', encode_rank(i, T), f"p{i}", '[]')
    assert store.pending_writes == 2
    redis_server.connected = True
    store.check_connection()
    assert _names(store) == ['p1', 'p2']


def test_read_while_unavailable_raises_store_error(store, redis_server):
    redis_server.connected = False
    with pytest.raises(StoreUnavailable):
        store.top_range('b1', 0, 6)


def test_listener_removal_is_idempotent_and_failures_are_contained(store, redis_server, caplog):
    seen = []

    def broken():
        raise RuntimeError('boom')

    def listener():
        seen.append(True)

    store.on_reconnect(broken)
    store.on_reconnect(listener)
    store.remove_reconnect_listener(listener)
    store.remove_reconnect_listener(listener)
    store.on_reconnect(listener)

    redis_server.connected = False
    store.check_connection()
    redis_server.connected = True
    store.check_connection()
    assert seen == [True]
    assert any('[store-reconnect-listener-failed]' in r.getMessage() for r in caplog.records)


def test_watch_checks_until_stopped(store):
    sleeps = []
    store.watch(0.5, sleep=sleeps.append, should_stop=lambda: len(sleeps) >= 3)
    assert sleeps == [0.5, 0.5, 0.5]


def test_trim_of_a_very_large_board_removes_all_dropped_rotations(redis_client):
    # More dropped names than Lua can unpack in one call
    redis_client.zadd('hiscores:b1', {f"p{i}": 50 + i for i in range(10000)})
    redis_client.hset('hiscores:b1:rotations', mapping={f"p{i}": '[]' for i in range(10000)})
    store = RedisHiscoreStore(redis_client, retained_size=100)
    assert store.conditional_insert('b1', encode_rank(3, T), 'Ann', '["cw"]')
    assert redis_client.zcard('hiscores:b1') == 100
    assert redis_client.hlen('hiscores:b1:rotations') == 100
    assert _names(store)[0] == 'Ann'


def test_concurrent_submissions_for_one_name_keep_the_best(store):
    n_threads = 20
    barrier = threading.Barrier(n_threads)
    errors = []

    def submit(n_rotations):
        try:
            barrier.wait()
            store.conditional_insert('b1', encode_rank(n_rotations, T + n_rotations), 'x', '[]')
        except Exception as exc:
            errors.append(exc)

    # 8 is the best move count; the rest arrive in arbitrary order around it
    threads = [threading.Thread(target=submit, args=(8 + i,)) for i in range(n_threads)]
    for t in reversed(threads):
        t.start()
    for t in threads:
        t.join()
    assert errors == []
    assert store.top_range('b1', 0, -1) == [('x', encode_rank(8, T + 8))]
