import queue
from types import SimpleNamespace

import pytest

from conftest import make_entry, make_feed
from schemas.events import EntryContentFetched, FeedAdded, SyncCompleted
from services import feed_tasks
from services.feed_tasks import EventChannel, TaskLauncher, run_add_feed, run_fetch_content, run_sync
from services.reader_errors import NetworkError, ParseError


def _raise(exc):
    def _inner(*args, **kwargs):
        raise exc

    return _inner


def test_channel_is_fifo_and_non_blocking():
    channel = EventChannel()
    assert channel.try_receive() is None

    first = SyncCompleted(error="one")
    second = SyncCompleted(error="two")
    channel.send(first)
    channel.send(second)

    assert channel.try_receive() is first
    assert channel.receive(timeout=1) is second
    with pytest.raises(queue.Empty):
        channel.receive(timeout=0.01)


def test_run_add_feed_reports_success_and_failure():
    feed = make_feed("a")
    ok = run_add_feed(SimpleNamespace(fetch_feed=lambda url: feed), "https://example.com/a.xml")
    assert ok == FeedAdded(source_url="https://example.com/a.xml", feed=feed)
    assert ok.ok

    failed = run_add_feed(
        SimpleNamespace(fetch_feed=_raise(ParseError("unable to parse feed: no root element"))),
        "https://example.com/bad",
    )
    assert not failed.ok
    assert failed.error == "Failed to add feed: unable to parse feed: no root element"


def test_run_fetch_content_keeps_entry_address():
    client = SimpleNamespace(fetch_page_text=lambda link, width: f"{link}:{width}")
    result = run_fetch_content(client, 2, 5, "https://example.com/p", 60, "e-5")
    assert result == EntryContentFetched(2, 5, content="https://example.com/p:60", entry_id="e-5")

    failing = SimpleNamespace(fetch_page_text=_raise(NetworkError("404 Not Found")))
    failed = run_fetch_content(failing, 2, 5, "https://example.com/p", None)
    assert (failed.feed_index, failed.entry_index) == (2, 5)
    assert failed.error == "Failed to load full content: 404 Not Found"


def test_run_sync_collects_error_text():
    client = SimpleNamespace(fetch_entries=_raise(NetworkError("timed out")))

    result = run_sync(client, [make_feed("a")])

    assert result == SyncCompleted(error="timed out")


def test_launcher_sync_works_on_a_snapshot(monkeypatch):
    spawned = []
    channel = EventChannel()
    launcher = TaskLauncher(channel, SimpleNamespace(), spawn=lambda name, target: spawned.append((name, target)))
    captured = {}

    def fake_run_sync(client, snapshot):
        captured["snapshot"] = snapshot
        return SyncCompleted(feeds=tuple(snapshot))

    monkeypatch.setattr(feed_tasks, "run_sync", fake_run_sync)
    feeds = [make_feed("a", [make_entry("a1")])]

    launcher.sync(feeds)
    feeds[0].entries[0].read = True
    feeds.append(make_feed("b"))
    name, target = spawned[0]
    target()

    assert name == "sync"
    snapshot = captured["snapshot"]
    assert [feed.id for feed in snapshot] == ["a"]
    assert snapshot[0].entries[0].read is False
    assert channel.try_receive().feeds[0].id == "a"


def test_launcher_threads_deliver_one_event_each():
    channel = EventChannel()
    client = SimpleNamespace(
        fetch_feed=lambda url: make_feed("a"),
        fetch_page_text=lambda link, width: "text",
    )
    launcher = TaskLauncher(channel, client)

    launcher.add_feed("https://example.com/a.xml")
    launcher.fetch_entry_content(0, 0, "https://example.com/a1", 70, entry_id="a1")

    events = [channel.receive(timeout=5), channel.receive(timeout=5)]
    assert sorted(type(event).__name__ for event in events) == ["EntryContentFetched", "FeedAdded"]
    assert all(event.ok for event in events)
    assert channel.try_receive() is None
