"""End-to-end pass scenarios: collect, reconcile, notify against a real store.

Sources and channels are in-process doubles; no network is involved.
"""

import pytest

from watchvuln.app import build_app
from watchvuln.core.models import Severity
from watchvuln.daemon.reconciler import Reconciler
from watchvuln.daemon.scheduler import PassScheduler
from watchvuln.intelligence.collector import Collector
from watchvuln.push.notifier import Notifier


@pytest.mark.integration
@pytest.mark.asyncio
async def test_severity_upgrade_is_renotified_once(store, make_raw, make_channel):
    reconciler = Reconciler(store)
    a, b = make_channel("a"), make_channel("b")
    notifier = Notifier([a, b], store)

    reconciler.reconcile_batch([make_raw("CVE-TEST-1", severity=Severity.MEDIUM)])
    first = store.find_by_key("CVE-TEST-1")
    assert first.pushed is False
    assert first.reasons == ["created"]

    reconciler.reconcile_batch([make_raw("CVE-TEST-1", severity=Severity.CRITICAL)])
    second = store.find_by_key("CVE-TEST-1")
    assert second.pushed is False
    assert second.reasons == ["created", "severity: Medium => Critical"]

    report = await notifier.notify_pending(store.find_pending())
    assert report.delivered == ["CVE-TEST-1"]
    assert store.find_by_key("CVE-TEST-1").pushed is True

    reconciler.reconcile_batch([make_raw("CVE-TEST-1", severity=Severity.CRITICAL)])
    assert store.find_pending() == []
    report = await notifier.notify_pending(store.find_pending())

    assert report.attempted == 0
    assert len(a.messages) == 1 and len(b.messages) == 1
    assert store.find_by_key("CVE-TEST-1").reasons == ["created", "severity: Medium => Critical"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_scheduled_passes_follow_record_history(make_context, make_source, make_channel, make_raw, store):
    source = make_source("feed", [make_raw("CVE-TEST-1", severity=Severity.MEDIUM)])
    a, b = make_channel("a"), make_channel("b")
    scheduler = PassScheduler(make_context([source], [a, b]))

    await scheduler.run_pass(2)
    source.records = [make_raw("CVE-TEST-1", severity=Severity.CRITICAL)]
    second = await scheduler.run_pass(1)
    third = await scheduler.run_pass(1)

    assert second.reconcile.changed == ["CVE-TEST-1"]
    assert third.reconcile.unchanged == 1
    assert third.delivery.attempted == 0
    assert len(a.messages) == 2
    assert "- Severity: **Critical**" in a.messages[-1][1]
    assert "severity: Medium => Critical" in a.messages[-1][1]
    assert store.find_by_key("CVE-TEST-1").pushed is True


@pytest.mark.integration
@pytest.mark.asyncio
async def test_failing_channel_keeps_record_pending(make_context, make_source, make_channel, make_raw, store):
    source = make_source("feed", [make_raw("CVE-TEST-2")])
    healthy, broken = make_channel("healthy"), make_channel("broken", fail=True)
    scheduler = PassScheduler(make_context([source], [healthy, broken]))

    for _ in range(3):
        report = await scheduler.run_pass(1)
        assert report.delivery.failed == ["CVE-TEST-2"]
        assert store.find_by_key("CVE-TEST-2").pushed is False

    assert len(healthy.messages) == 3
    assert len(broken.messages) == 3
    assert store.find_by_key("CVE-TEST-2").reasons == ["created"]

    broken.fail = False
    report = await scheduler.run_pass(1)

    assert report.delivery.delivered == ["CVE-TEST-2"]
    assert store.find_by_key("CVE-TEST-2").pushed is True
    assert (await scheduler.run_pass(1)).delivery.attempted == 0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_one_failing_source_does_not_hide_others(store, make_source, make_raw):
    sources = [
        make_source("down", error=ConnectionError("refused")),
        make_source("one", [make_raw("ONE-1")]),
        make_source("two", [make_raw("TWO-1"), make_raw("TWO-2")]),
    ]

    raws = await Collector().collect(sources, volume_hint=1)
    report = Reconciler(store).reconcile_batch(raws)

    assert sorted(report.new) == ["ONE-1", "TWO-1", "TWO-2"]
    assert store.count() == 3


@pytest.mark.integration
def test_unchanged_sighting_is_idempotent(store, make_raw):
    reconciler = Reconciler(store)
    reconciler.reconcile(make_raw("K"))
    store.set_pushed("K", True)
    before = store.find_by_key("K")

    reconciler.reconcile(make_raw("K"))
    reconciler.reconcile(make_raw("K"))
    after = store.find_by_key("K")

    assert after.reasons == before.reasons
    assert after.pushed is before.pushed is True


@pytest.mark.integration
@pytest.mark.asyncio
async def test_records_survive_restart(tmp_path, settings, make_source, make_channel, make_raw):
    channel = make_channel("c")
    first = build_app(settings, sources=[make_source("feed", [make_raw("K")])], channels=[channel])
    await PassScheduler(first).run_pass(1)
    first.close()

    second = build_app(settings, sources=[make_source("feed", [make_raw("K")])], channels=[channel])
    try:
        report = await PassScheduler(second).run_pass(1)
    finally:
        second.close()

    assert report.reconcile.unchanged == 1
    assert len(channel.messages) == 1
