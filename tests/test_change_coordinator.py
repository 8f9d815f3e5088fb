from __future__ import annotations

import logging
from dataclasses import dataclass, field

import pytest

from export_engine.catalog import InMemoryProfileCatalog
from export_engine.clock import ManualTimeSource
from export_engine.coordinator import ChangeCoordinator
from export_engine.data_models import DiscoveredAsset, Profile, ProfileScan
from export_engine.debounce import ManualTicker
from export_engine.errors import ProfileScanError
from export_engine.settings import EngineSettings


@dataclass
class RecordingCollector:
    """Returns one asset per export root plus extra paths; records every call."""

    fail_for: set[str] = field(default_factory=set)
    extra_paths: dict[str, list[str]] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)

    def scan(self, profile: Profile) -> tuple[DiscoveredAsset, ...]:
        self.calls.append(profile.profile_id)
        if profile.profile_id in self.fail_for:
            raise OSError("disk went away")
        return tuple(
            DiscoveredAsset(
                path=f"{root}/file.png", size_bytes=1, source_profile_id=profile.profile_id
            )
            for root in profile.export_roots
        ) + tuple(
            DiscoveredAsset(path=path, size_bytes=1, source_profile_id=profile.profile_id)
            for path in self.extra_paths.get(profile.profile_id, ())
        )


@dataclass
class Harness:
    coordinator: ChangeCoordinator
    catalog: InMemoryProfileCatalog
    collector: RecordingCollector
    ticker: ManualTicker
    clock: ManualTimeSource
    details: list[tuple[str, ...]]
    busy: list[bool]

    def settle(self) -> None:
        self.clock.advance(self.coordinator.scheduler.quiet_period)
        self.ticker.fire()


def _harness(*profiles: Profile, displayed: tuple[str, ...] = (), **kwargs: object) -> Harness:
    catalog = InMemoryProfileCatalog(profiles)
    catalog.set_displayed(displayed)
    collector = RecordingCollector()
    ticker = ManualTicker()
    clock = ManualTimeSource()
    details: list[tuple[str, ...]] = []
    busy = [False]
    coordinator = ChangeCoordinator(
        catalog,
        collector,
        ticker=ticker,
        time_source=clock,
        is_host_busy=lambda: busy[0],
        on_details_changed=details.append,
        **kwargs,  # type: ignore[arg-type]
    )
    return Harness(coordinator, catalog, collector, ticker, clock, details, busy)


def test_relevant_change_is_rescanned_once_after_quiet_period() -> None:
    h = _harness(Profile("p", export_roots=("Assets/Foo",)), displayed=("p",))

    affected = h.coordinator.handle_changes(["Assets/Foo/bar.png"])

    assert affected == ("p",)
    assert h.coordinator.store.is_dirty("p")
    assert h.coordinator.scheduler.is_armed
    assert h.ticker.is_running
    assert h.collector.calls == []

    h.settle()

    assert h.collector.calls == ["p"]
    assert not h.coordinator.store.is_dirty("p")
    assert h.details == [("p",)]
    result = h.coordinator.store.cached_result("p")
    assert result is not None
    assert result.asset_paths == ("Assets/Foo/file.png",)
    assert not h.ticker.is_running


def test_burst_of_batches_scans_once() -> None:
    h = _harness(Profile("p", export_roots=("Assets/Foo",)), displayed=("p",))

    for i in range(10):
        h.coordinator.handle_changes([f"Assets/Foo/{i}.png"])
        h.clock.advance(0.5)
        h.ticker.fire()
    h.settle()

    assert h.collector.calls == ["p"]
    assert h.details == [("p",)]


def test_irrelevant_change_does_not_arm() -> None:
    h = _harness(Profile("p", export_roots=("Assets/Foo",)), displayed=("p",))

    assert h.coordinator.handle_changes(["Assets/Bar/x.png"]) == ()

    assert not h.coordinator.store.is_dirty("p")
    assert not h.coordinator.scheduler.is_armed
    assert "p" in h.coordinator.store


@pytest.mark.parametrize("batch", [None, [], ["", "   "]])
def test_empty_batches_are_ignored(batch: list[str] | None) -> None:
    h = _harness(Profile("p", export_roots=("Assets/Foo",)), displayed=("p",))

    assert h.coordinator.handle_changes(batch) == ()
    assert len(h.coordinator.store) == 0


def test_changes_during_host_reload_are_dropped() -> None:
    h = _harness(Profile("p", export_roots=("Assets/Foo",)), displayed=("p",))
    h.busy[0] = True

    assert h.coordinator.handle_changes(["Assets/Foo/bar.cs"]) == ()

    assert not h.coordinator.store.is_dirty("p")
    assert not h.coordinator.scheduler.is_armed


def test_profile_without_roots_is_only_affected_through_its_includes() -> None:
    h = _harness(
        Profile("empty"),
        Profile("bundle", included_ids=("p",)),
        Profile("p", export_roots=("Assets/Foo",)),
        displayed=("bundle",),
    )

    assert h.coordinator.handle_changes(["Assets/Foo/bar.png"]) == ("p", "bundle")
    assert h.coordinator.store.is_dirty("bundle")
    assert "empty" not in h.coordinator.store


def test_change_under_bundled_profile_refreshes_composite() -> None:
    h = _harness(
        Profile("outfit", export_roots=("Assets/Outfit",), included_ids=("shirt",)),
        Profile("shirt", export_roots=("Assets/Shirt",)),
        displayed=("outfit",),
    )
    h.coordinator.ensure_scanned("outfit")
    h.collector.extra_paths["shirt"] = ["Assets/Shirt/b.png"]

    affected = h.coordinator.handle_changes(["Assets/Shirt/b.png"])

    assert affected == ("shirt", "outfit")
    assert h.coordinator.store.is_dirty("outfit")

    h.settle()

    assert not h.coordinator.store.is_dirty("outfit")
    assert h.details == [("outfit",)]
    result = h.coordinator.store.cached_result("outfit")
    assert result is not None
    assert "Assets/Shirt/b.png" in result.asset_paths


def test_bare_string_batch_is_ignored() -> None:
    h = _harness(Profile("p", export_roots=("Assets/Foo",)), displayed=("p",))

    assert h.coordinator.handle_changes("Assets/Foo/x.png") == ()
    assert not h.coordinator.scheduler.is_armed


def test_hidden_profile_stays_dirty_until_displayed() -> None:
    h = _harness(Profile("p", export_roots=("Assets/Foo",)))

    h.coordinator.handle_changes(["Assets/Foo/bar.png"])
    h.settle()

    assert h.collector.calls == []
    assert h.coordinator.store.is_dirty("p")
    assert h.details == []

    result = h.coordinator.ensure_scanned("p")

    assert result is not None
    assert h.collector.calls == ["p"]
    assert not h.coordinator.store.is_dirty("p")


def test_ensure_scanned_uses_cache_when_clean() -> None:
    h = _harness(Profile("p", export_roots=("Assets/Foo",)))

    first = h.coordinator.ensure_scanned("p")
    second = h.coordinator.ensure_scanned("p")

    assert first is second
    assert h.collector.calls == ["p"]


def test_scan_failure_leaves_profile_dirty_and_retries_later(
    caplog: pytest.LogCaptureFixture,
) -> None:
    h = _harness(Profile("p", export_roots=("Assets/Foo",)), displayed=("p",))
    h.collector.fail_for.add("p")

    with caplog.at_level(logging.ERROR, logger="export_engine.coordinator"):
        h.coordinator.handle_changes(["Assets/Foo/bar.png"])
        h.settle()

    assert h.coordinator.store.is_dirty("p")
    assert h.coordinator.store.cached_result("p") is None
    assert h.details == []
    assert "Asset scan failed for profile p" in caplog.text

    h.collector.fail_for.clear()
    h.coordinator.handle_changes(["Assets/Foo/bar.png"])
    h.settle()

    assert h.collector.calls == ["p", "p"]
    assert not h.coordinator.store.is_dirty("p")


def test_direct_rescan_raises_scan_error() -> None:
    h = _harness(Profile("p", export_roots=("Assets/Foo",)))
    h.collector.fail_for.add("p")

    with pytest.raises(ProfileScanError) as excinfo:
        h.coordinator.rescan("p")

    assert excinfo.value.profile_id == "p"


def test_failed_scan_keeps_stale_result_for_display() -> None:
    h = _harness(Profile("p", export_roots=("Assets/Foo",)))
    stale = h.coordinator.ensure_scanned("p")
    h.coordinator.handle_changes(["Assets/Foo/bar.png"])
    h.collector.fail_for.add("p")

    assert h.coordinator.ensure_scanned("p") is stale
    assert h.coordinator.store.is_dirty("p")


def test_composite_rescan_scans_resolved_profiles_and_merges() -> None:
    h = _harness(
        Profile("outfit", export_roots=("Assets/Outfit",), included_ids=("shirt", "pants")),
        Profile("shirt", export_roots=("Assets/Shirt",)),
        Profile("pants", export_roots=("Assets/Pants",), included_ids=("gone",)),
        displayed=("outfit",),
    )

    h.coordinator.handle_changes(["Assets/Outfit/hat.prefab"])
    h.settle()

    assert h.collector.calls == ["outfit", "shirt", "pants"]
    result = h.coordinator.store.cached_result("outfit")
    assert result is not None
    assert result.graph is not None
    assert result.graph.resolved == ("shirt", "pants")
    assert result.graph.missing == ("gone",)
    assert result.asset_paths == (
        "Assets/Outfit/file.png",
        "Assets/Shirt/file.png",
        "Assets/Pants/file.png",
    )


def test_cyclic_composite_rescan_terminates() -> None:
    h = _harness(
        Profile("a", export_roots=("Assets/A",), included_ids=("b",)),
        Profile("b", export_roots=("Assets/B",), included_ids=("a",)),
    )

    result = h.coordinator.rescan("a")

    assert result is not None
    assert h.collector.calls == ["a", "b"]
    assert result.graph is not None
    assert result.graph.resolved == ("b",)
    assert result.graph.cycles == (("a", "b", "a"),)


def test_rescanning_unchanged_profile_is_stable() -> None:
    h = _harness(
        Profile("a", export_roots=("Assets/A",), included_ids=("b",)),
        Profile("b", export_roots=("Assets/B",)),
    )

    first = h.coordinator.rescan("a")
    second = h.coordinator.rescan("a")

    assert first == second


def test_deleted_profile_is_forgotten_at_flush() -> None:
    h = _harness(Profile("p", export_roots=("Assets/Foo",)), displayed=("p",))
    h.coordinator.handle_changes(["Assets/Foo/bar.png"])

    h.catalog.remove("p")
    h.settle()

    assert h.collector.calls == []
    assert "p" not in h.coordinator.store
    assert h.details == []


def test_profile_rescanned_lazily_is_not_scanned_again_at_flush() -> None:
    h = _harness(Profile("p", export_roots=("Assets/Foo",)), displayed=("p",))
    h.coordinator.handle_changes(["Assets/Foo/bar.png"])

    h.coordinator.ensure_scanned("p")
    h.settle()

    assert h.collector.calls == ["p"]
    assert h.details == []


def test_include_list_change_invalidates_profile_and_dependents() -> None:
    h = _harness(
        Profile("outfit", included_ids=("clothes",)),
        Profile("clothes", export_roots=("Assets/Clothes",), included_ids=("pants",)),
        Profile("pants", export_roots=("Assets/Pants",)),
        displayed=("outfit",),
    )

    affected = h.coordinator.notify_includes_changed("clothes")

    assert affected == ("clothes", "outfit")
    assert h.coordinator.store.is_dirty("clothes")
    assert h.coordinator.store.is_dirty("outfit")
    assert h.coordinator.scheduler.pending == ("clothes", "outfit")

    h.settle()

    assert h.collector.calls == ["outfit", "clothes", "pants"]
    assert h.details == [("outfit",)]


def test_include_change_for_missing_profile_is_ignored() -> None:
    h = _harness()
    assert h.coordinator.notify_includes_changed("ghost") == ()
    assert not h.coordinator.scheduler.is_armed


def test_changes_raised_during_flush_queue_a_new_flush() -> None:
    follow_up: list[str] = []

    def after_rescan(profile_id: str, _scan: ProfileScan) -> None:
        if profile_id == "a":
            follow_up.extend(h.coordinator.handle_changes(["Assets/B/generated.asset"]))

    h = _harness(
        Profile("a", export_roots=("Assets/A",)),
        Profile("b", export_roots=("Assets/B",)),
        displayed=("a", "b"),
        after_rescan=after_rescan,
    )

    h.coordinator.handle_changes(["Assets/A/x.png"])
    h.settle()

    assert follow_up == ["b"]
    assert h.collector.calls == ["a"]
    assert h.coordinator.scheduler.pending == ("b",)
    assert h.ticker.is_running

    h.settle()

    assert h.collector.calls == ["a", "b"]
    assert h.details == [("a",), ("b",)]


def test_asset_postprocess_combines_all_groups() -> None:
    h = _harness(
        Profile("a", export_roots=("Assets/A",)),
        Profile("b", export_roots=("Assets/B",)),
    )

    affected = h.coordinator.handle_asset_postprocess(
        imported=[], deleted=None, moved=["Assets/Elsewhere/x.png"], moved_from=["Assets/B/x.png"]
    )

    assert affected == ("b",)


def test_invalidate_all_queues_every_tracked_profile() -> None:
    h = _harness(
        Profile("a", export_roots=("Assets/A",)),
        Profile("b", included_ids=("a",)),
    )

    assert h.coordinator.invalidate_all() == ("a", "b")
    assert h.coordinator.store.dirty_ids() == ("a", "b")
    assert h.coordinator.scheduler.is_armed


def test_close_cancels_pending_flush() -> None:
    h = _harness(Profile("p", export_roots=("Assets/Foo",)), displayed=("p",))
    h.coordinator.handle_changes(["Assets/Foo/bar.png"])

    h.coordinator.close()
    h.settle()

    assert not h.coordinator.scheduler.is_armed
    assert not h.ticker.is_running
    assert h.collector.calls == []
    assert h.coordinator.store.is_dirty("p")


def test_flush_errors_reach_error_channel() -> None:
    errors: list[Exception] = []

    def explode(_ids: tuple[str, ...]) -> None:
        raise RuntimeError("panel refresh failed")

    catalog = InMemoryProfileCatalog([Profile("p", export_roots=("Assets/Foo",))])
    catalog.set_displayed(["p"])
    ticker = ManualTicker()
    clock = ManualTimeSource()
    coordinator = ChangeCoordinator(
        catalog,
        RecordingCollector(),
        ticker=ticker,
        time_source=clock,
        on_details_changed=explode,
        on_error=errors.append,
    )

    coordinator.handle_changes(["Assets/Foo/bar.png"])
    clock.advance(1.0)
    ticker.fire()

    assert len(errors) == 1
    assert "panel refresh failed" in str(errors[0])
    assert not coordinator.scheduler.is_armed
    assert not coordinator.store.is_dirty("p")


def test_from_settings_applies_quiet_period_and_layout() -> None:
    settings = EngineSettings(
        quiet_period_seconds=2.0,
        project_root=None,
        content_prefixes=("Content",),
    )
    catalog = InMemoryProfileCatalog([Profile("p", export_roots=("Content/Foo",))])

    coordinator = ChangeCoordinator.from_settings(
        settings, catalog, RecordingCollector(), ticker=ManualTicker()
    )

    assert coordinator.scheduler.quiet_period == 2.0
    assert coordinator.layout.content_prefixes == ("Content",)
    assert coordinator.handle_changes(["Content/Foo/a.png"]) == ("p",)
    assert coordinator.handle_changes(["Assets/Foo/a.png"]) == ()
