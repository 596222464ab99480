"""
Tests for the retention policy in depot_cleaner/retention.py

Covers the age cutoff boundary, exclusion precedence, untagged images and the
digest safety rule: a digest is only deleted when every tag pointing at it is deleted.
"""

from datetime import datetime, timedelta, timezone

import pytest

from depot_cleaner.image_metadata import Image
from depot_cleaner.retention import ImageToDelete, classify, compute_cutoff, reconcile_digests
from depot_cleaner.tag_matching import ExclusionRules

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def days_ago(days):
    return NOW - timedelta(days=days)


def image(tag, digest=None, age_days=None):
    return Image(
        tag=f"registry.depot.dev/p1:{tag}" if tag else None,
        digest=digest,
        pushed_at=days_ago(age_days) if age_days is not None else None,
    )


@pytest.fixture
def no_rules():
    return ExclusionRules()


class TestCutoff:
    def test_image_exactly_at_cutoff_is_deleted(self, no_rules):
        """The cutoff boundary is inclusive"""
        decision = classify([image("v1", "sha256:a", 30)], 30, "p1", no_rules, now=NOW)

        assert decision.images_to_delete == [ImageToDelete("v1", "sha256:a")]
        assert decision.digests_to_delete == {"sha256:a"}

    def test_image_just_after_cutoff_is_kept(self, no_rules):
        recent = Image(tag="p1:v1", digest="sha256:a", pushed_at=days_ago(30) + timedelta(seconds=1))

        decision = classify([recent], 30, "p1", no_rules, now=NOW)

        assert decision.images_to_delete == []
        assert decision.kept_count == 1

    def test_zero_days_deletes_everything_pushed_so_far(self, no_rules):
        decision = classify([image("v1", "sha256:a", 0), image("v2", "sha256:b", 1)], 0, "p1", no_rules, now=NOW)

        assert [i.display_tag for i in decision.images_to_delete] == ["v1", "v2"]

    def test_negative_cutoff_rejected(self, no_rules):
        with pytest.raises(ValueError):
            classify([], -1, "p1", no_rules, now=NOW)

    def test_compute_cutoff_accepts_naive_now(self):
        assert compute_cutoff(datetime(2026, 3, 1, 12, 0), 1) == NOW - timedelta(days=1)


class TestExclusions:
    def test_exclusion_beats_age(self):
        """An old but excluded image is kept"""
        decision = classify([image("latest", "sha256:a", 400)], 30, "p1", ExclusionRules(["latest"]), now=NOW)

        assert decision.images_to_delete == []
        assert decision.digests_to_delete == set()
        assert decision.kept_count == 1

    def test_project_scoped_exclusion(self):
        rules = ExclusionRules(["p1:staging"])
        images = [image("staging", "sha256:a", 40)]

        assert classify(images, 30, "p1", rules, now=NOW).images_to_delete == []
        assert classify(images, 30, "p2", rules, now=NOW).tags_to_delete == ["staging"]


class TestMissingData:
    def test_untagged_image_is_skipped(self, no_rules):
        """No tag: neither kept nor deleted, and its digest is not protected"""
        images = [image(None, "sha256:a", 40), image("v1", "sha256:a", 40)]

        decision = classify(images, 30, "p1", no_rules, now=NOW)

        assert decision.skipped_count == 1
        assert decision.kept_count == 0
        assert decision.tags_to_delete == ["v1"]
        assert decision.digests_to_delete == {"sha256:a"}

    def test_missing_pushed_at_is_kept(self, no_rules):
        decision = classify([image("v1", "sha256:a")], 30, "p1", no_rules, now=NOW)

        assert decision.images_to_delete == []
        assert decision.kept_count == 1

    def test_missing_pushed_at_protects_shared_digest(self, no_rules):
        images = [image("v1", "sha256:a", 40), image("v2", "sha256:a")]

        decision = classify(images, 30, "p1", no_rules, now=NOW)

        assert decision.tags_to_delete == ["v1"]
        assert decision.digests_to_delete == set()

    def test_old_image_without_digest(self, no_rules):
        decision = classify([image("v1", None, 40)], 30, "p1", no_rules, now=NOW)

        assert decision.images_to_delete == [ImageToDelete("v1", None)]
        assert decision.digests_to_delete == set()


class TestDigestSafety:
    @pytest.mark.parametrize(
        "keeper",
        [
            image("latest", "sha256:shared", 40),  # excluded
            image("v9", "sha256:shared", 2),  # too recent
            image("v8", "sha256:shared"),  # no timestamp
        ],
        ids=["excluded", "recent", "no-timestamp"],
    )
    def test_any_kept_tag_protects_digest(self, keeper):
        """A kept tag rescues the digest whether it appears before or after the deleted ones"""
        deletable = [image("v1", "sha256:shared", 40), image("v2", "sha256:shared", 50)]
        rules = ExclusionRules(["latest"])

        for images in (deletable + [keeper], [keeper] + deletable):
            decision = classify(images, 30, "p1", rules, now=NOW)
            assert decision.tags_to_delete == ["v1", "v2"]
            assert decision.digests_to_delete == set()
            assert decision.referenced_digests == {"sha256:shared"}

    def test_digest_deleted_once_when_all_tags_deleted(self, no_rules):
        images = [image("v1", "sha256:shared", 40), image("v2", "sha256:shared", 45), image("v3", "sha256:other", 60)]

        decision = classify(images, 30, "p1", no_rules, now=NOW)

        assert decision.tags_to_delete == ["v1", "v2", "v3"]
        assert decision.digests_to_delete == {"sha256:shared", "sha256:other"}

    def test_reconcile_digests(self):
        assert reconcile_digests({"a", "b", "c"}, {"b", "z"}) == {"a", "c"}

    def test_input_not_mutated(self, no_rules):
        images = [image("v1", "sha256:a", 40), image("v2", "sha256:a", 1)]
        snapshot = list(images)

        classify(images, 30, "p1", no_rules, now=NOW)

        assert images == snapshot


class TestScenario:
    def test_latest_shares_digest_with_old_tag(self):
        """Excluded "latest" keeps d1 alive, so only the v1 tag goes"""
        images = [
            Image(tag="p1:latest", digest="d1", pushed_at=days_ago(40)),
            Image(tag="p1:v1", digest="d1", pushed_at=days_ago(40)),
            Image(tag="p1:v2", digest="d2", pushed_at=days_ago(5)),
        ]

        decision = classify(images, 30, "p1", ExclusionRules(["latest"]), now=NOW)

        assert decision.images_to_delete == [ImageToDelete(display_tag="v1", digest="d1")]
        assert decision.digests_to_delete == set()
        assert decision.kept_count == 2

    def test_deterministic(self, no_rules):
        images = [image("v1", "sha256:a", 40), image("v2", "sha256:b", 3)]

        first = classify(images, 30, "p1", no_rules, now=NOW)
        second = classify(images, 30, "p1", no_rules, now=NOW)

        assert first == second

    def test_to_dict(self, no_rules):
        decision = classify([image("v1", "sha256:a", 40)], 30, "p1", no_rules, now=NOW)

        assert decision.to_dict() == {
            "images_to_delete": [{"tag": "v1", "digest": "sha256:a"}],
            "digests_to_delete": ["sha256:a"],
            "referenced_digests": [],
            "kept": 0,
            "skipped": 0,
            "deferred": 0,
        }


class TestDeletionLimit:
    def test_images_past_limit_are_deferred(self, no_rules):
        images = [image("v1", "sha256:a", 40), image("v2", "sha256:b", 40), image("v3", "sha256:c", 40)]

        decision = classify(images, 30, "p1", no_rules, now=NOW, max_deletions=2)

        assert decision.tags_to_delete == ["v1", "v2"]
        assert decision.digests_to_delete == {"sha256:a", "sha256:b"}
        assert decision.deferred_count == 1

    def test_deferred_image_protects_shared_digest(self):
        """A tag left in place by the limit still points at its digest"""
        images = [image("v1", "sha256:shared", 40), image("v2", "sha256:shared", 40)]

        decision = classify(images, 30, "p1", ExclusionRules(), now=NOW, max_deletions=1)

        assert decision.tags_to_delete == ["v1"]
        assert decision.digests_to_delete == set()
        assert decision.referenced_digests == {"sha256:shared"}

    def test_excluded_tag_after_limit_protects_shared_digest(self):
        images = [image("v1", "sha256:shared", 40), image("latest", "sha256:shared", 40)]

        decision = classify(images, 30, "p1", ExclusionRules(["latest"]), now=NOW, max_deletions=1)

        assert decision.tags_to_delete == ["v1"]
        assert decision.digests_to_delete == set()

    def test_recent_images_do_not_count_against_limit(self, no_rules):
        images = [image("new", "sha256:n", 1), image("v1", "sha256:a", 40)]

        decision = classify(images, 30, "p1", no_rules, now=NOW, max_deletions=1)

        assert decision.tags_to_delete == ["v1"]
        assert decision.deferred_count == 0

    def test_zero_limit_deletes_nothing(self, no_rules):
        decision = classify([image("v1", "sha256:a", 40)], 30, "p1", no_rules, now=NOW, max_deletions=0)

        assert decision.images_to_delete == []
        assert decision.digests_to_delete == set()
        assert decision.deferred_count == 1


class TestLargeCutoff:
    def test_cutoff_beyond_calendar_start_is_clamped(self):
        assert compute_cutoff(NOW, 999999999) == datetime.min.replace(tzinfo=timezone.utc)

    def test_huge_cutoff_keeps_everything(self, no_rules):
        decision = classify([image("v1", "sha256:a", 400)], 1000000000, "p1", no_rules, now=NOW)

        assert decision.images_to_delete == []
        assert decision.kept_count == 1
