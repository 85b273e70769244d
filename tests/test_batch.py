"""
Tests for batch write-back, scanning and the session workflow.

All tests run against the in-memory API, so no server is needed.
"""

import pytest

from transdedup.api.base import Presenter
from transdedup.api.memory import InMemoryApi, demo_api
from transdedup.batch import BatchReconciler
from transdedup.errors import FetchTypeError
from transdedup.pipeline import DuplicateScanner, ScanConfig, ScanResult
from transdedup.session import DedupSession


def tr(locale, prop, value):
    return {"locale": locale, "property": prop, "value": value}


@pytest.fixture
def api():
    return InMemoryApi({
        "dataElements": [
            {
                "id": "de1",
                "name": "First",
                "code": "DE1",
                "translations": [tr("en", "NAME", "A"), tr("en", "NAME", "B"), tr("fr", "NAME", "C")],
            },
            {
                "id": "de2",
                "name": "Second",
                "translations": [tr("fr", "NAME", "x"), tr("fr", "NAME", "y"),
                                 tr("fr", "SHORT_NAME", "s1"), tr("fr", "SHORT_NAME", "s2")],
            },
            {"id": "de3", "name": "Clean", "translations": [tr("fr", "NAME", "ok")]},
        ],
        "indicators": [
            {"id": "in1", "name": "Ind", "translations": [tr("pt", "NAME", "p"), tr("pt", "NAME", "q")]},
        ],
    })


def scan(api, **kwargs):
    return DuplicateScanner(api, ScanConfig(**kwargs)).scan()


class RecordingPresenter(Presenter):
    def __init__(self):
        self.progress = []
        self.summaries = []
        self.renders = 0

    def notify_progress(self, fraction, message=""):
        self.progress.append(fraction)

    def notify_summary(self, succeeded, failed, dry_run=False):
        self.summaries.append((succeeded, failed, dry_run))

    def render_state(self, store):
        self.renders += 1


class TestScanner:
    """Tests for the detection pass."""

    def test_finds_groups_across_types(self, api):
        """Every duplicated key of every type is reported."""
        result = scan(api)

        assert result.objects_scanned == 4
        assert result.types_scanned == ["dataElements", "indicators"]
        assert [(g.object_id, g.locale, g.property) for g in result.groups] == [
            ("de1", "en", "NAME"),
            ("de2", "fr", "NAME"),
            ("de2", "fr", "SHORT_NAME"),
            ("in1", "pt", "NAME"),
        ]
        assert result.objects_with_duplicates == 3

    def test_failed_type_is_skipped(self, api):
        """One type failing doesn't stop the scan."""
        api.failing_types.add("dataElements")
        result = scan(api)

        assert result.failed_types == ["dataElements"]
        assert [g.object_id for g in result.groups] == ["in1"]

    def test_type_listing_failure_is_fatal(self, api):
        """Without a type list there is nothing to scan."""
        api.fail_type_listing = True
        with pytest.raises(FetchTypeError):
            scan(api)

    def test_type_filters(self, api):
        """Allow and deny lists restrict the scanned types."""
        assert scan(api, object_types=["indicators"]).types_scanned == ["indicators"]
        assert scan(api, exclude_types=["indicators"]).types_scanned == ["dataElements"]

    def test_progress_reported_per_type(self, api):
        """Progress reaches 1.0 after the last type."""
        seen = []
        DuplicateScanner(api, progress_callback=lambda msg, pct: seen.append(pct)).scan()
        assert seen == [0.5, 1.0]

    def test_report_json_round_trip(self, api, tmp_path):
        """A saved report restores the same groups."""
        result = scan(api)
        path = result.save(tmp_path / "report.json")
        restored = ScanResult.load(path)

        assert restored.groups == result.groups
        assert restored.stats == result.stats


class TestBatchReconciler:
    """Tests for per-object write-back."""

    def test_writes_reconciled_translations(self, api):
        """The server ends up with one value per key and keeps other fields."""
        groups = scan(api).groups
        result = BatchReconciler(api).apply(groups[:1])

        assert result.success
        saved = api.get("dataElements", "de1")
        assert saved["translations"] == [tr("fr", "NAME", "C"), tr("en", "NAME", "A")]
        assert saved["code"] == "DE1"

    def test_one_update_per_object(self, api):
        """Groups of the same object are written together."""
        groups = scan(api).groups
        result = BatchReconciler(api).apply(groups)

        assert api.writes == [("dataElements", "de1"), ("dataElements", "de2"), ("indicators", "in1")]
        assert api.get("dataElements", "de2")["translations"] == [tr("fr", "NAME", "x"), tr("fr", "SHORT_NAME", "s1")]
        assert result.succeeded_objects == ["de1", "de2", "in1"]

    def test_failure_is_isolated(self, api):
        """The second object's failure neither stops nor taints the others."""
        api.failing_writes.add("de2")
        groups = scan(api).groups
        result = BatchReconciler(api).apply(groups)

        assert [g.object_id for g in result.succeeded] == ["de1", "in1"]
        assert [g.object_id for g in result.failed] == ["de2", "de2"]
        assert result.failed_objects == ["de2"]
        assert api.writes == [("dataElements", "de1"), ("indicators", "in1")]

    def test_two_objects_second_fails(self):
        """With two objects, only the failing one is reported failed."""
        api = InMemoryApi(
            {"dataElements": [
                {"id": "a", "translations": [tr("en", "NAME", "1"), tr("en", "NAME", "2")]},
                {"id": "b", "translations": [tr("en", "NAME", "3"), tr("en", "NAME", "4")]},
            ]},
            failing_writes=["b"],
        )
        groups = scan(api).groups
        result = BatchReconciler(api).apply(groups)

        assert result.succeeded == groups[:1]
        assert result.failed == groups[1:]

    def test_missing_object_fails(self, api):
        """An object deleted since the scan is a per-object failure."""
        groups = scan(api).groups
        del api.objects["dataElements"]["de1"]
        result = BatchReconciler(api).apply(groups)

        assert result.failed_objects == ["de1"]
        assert "de1" not in result.succeeded_objects

    def test_fresh_copy_is_used(self, api):
        """Edits made after the scan on other keys survive the write."""
        groups = scan(api).groups
        api.objects["dataElements"]["de1"]["translations"].append(tr("de", "NAME", "neu"))
        BatchReconciler(api).apply(groups[:1])

        assert tr("de", "NAME", "neu") in api.get("dataElements", "de1")["translations"]

    def test_dry_run_does_not_write(self, api):
        """A dry run reports planned updates without saving."""
        groups = scan(api).groups
        result = BatchReconciler(api).apply(groups, dry_run=True)

        assert api.writes == []
        assert [u.written for u in result.updates] == [False, False, False]
        assert [t.value for t in result.updates[0].after] == ["C", "A"]
        assert result.updates[0].removed == 1
        assert len(api.get("dataElements", "de1")["translations"]) == 3

    def test_stop_between_objects(self, api):
        """Objects not reached before a stop stay retry-eligible."""
        groups = scan(api).groups
        calls = iter([False, True])
        result = BatchReconciler(api, should_stop=lambda: next(calls)).apply(groups)

        assert result.succeeded_objects == ["de1"]
        assert result.failed_objects == ["de2", "in1"]
        assert api.writes == [("dataElements", "de1")]


class TestSession:
    """Tests for the scan/fix/retry workflow."""

    def test_fix_drops_succeeded_and_keeps_failed(self, api):
        """Failed groups remain in the working set for a retry."""
        api.failing_writes.add("de2")
        presenter = RecordingPresenter()
        session = DedupSession(api, api, presenter)
        session.scan()
        session.store.select_all()

        result = session.fix_selected()

        assert presenter.summaries == [(2, 2, False)]
        assert session.store.object_ids == ["de2"]
        assert session.store.is_included("de2")
        assert [g.group_id for g in session.store.groups] == [g.group_id for g in result.failed]

    def test_retry_after_failure(self, api):
        """Once the server accepts the write, a retry clears the rest."""
        api.failing_writes.add("de2")
        session = DedupSession(api, api)
        session.scan()
        session.store.select_all()
        session.fix_selected()

        api.failing_writes.clear()
        result = session.fix_selected()

        assert result.success
        assert len(session.store) == 0

    def test_only_included_objects_are_written(self, api):
        """Objects that weren't marked are left alone."""
        session = DedupSession(api, api)
        session.scan()
        session.store.toggle_inclusion("in1")
        session.fix_selected()

        assert api.writes == [("indicators", "in1")]
        assert session.store.object_ids == ["de1", "de2"]

    def test_user_choice_is_written(self, api):
        """The winner the user picked is what the server receives."""
        session = DedupSession(api, api)
        result = session.scan()
        session.store.select_position(result.groups[0].group_id, 1)
        session.store.toggle_inclusion("de1")
        session.fix_selected()

        assert api.get("dataElements", "de1")["translations"] == [tr("fr", "NAME", "C"), tr("en", "NAME", "B")]

    def test_dry_run_keeps_working_set(self, api):
        """A dry run removes nothing."""
        presenter = RecordingPresenter()
        session = DedupSession(api, api, presenter)
        session.scan()
        session.store.select_all()
        session.fix_selected(dry_run=True)

        assert len(session.store) == 4
        assert api.writes == []
        assert presenter.summaries[-1][2] is True

    def test_presenter_notified(self, api):
        """Progress and renders reach the presenter."""
        presenter = RecordingPresenter()
        session = DedupSession(api, api, presenter)
        session.scan()

        assert presenter.progress[-1] == 1.0
        assert presenter.renders == 1

    def test_demo_api_has_duplicates(self):
        """The built-in sample contains something to fix."""
        api = demo_api()
        result = DuplicateScanner(api).scan()
        assert len(result.groups) == 3
