"""
Retention policy: decide which images of a project may be deleted.

Classification walks the project's full image set once, collecting tags to
delete, candidate digests (pushed by a deletable tag) and kept digests
(referenced by any tag that stays). Digest reconciliation runs only after the
whole set has been seen, because a later tag can still rescue a digest that an
earlier tag marked for deletion.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Set

from depot_cleaner.image_metadata import Image
from depot_cleaner.logging_utils import get_logger
from depot_cleaner.tag_matching import ExclusionRules, extract_tag_name

logger = get_logger(__name__)


@dataclass(frozen=True)
class ImageToDelete:
    """A tag scheduled for deletion"""

    display_tag: str
    digest: Optional[str] = None


@dataclass
class RetentionDecision:
    """Result of classifying a project's images"""

    images_to_delete: List[ImageToDelete] = field(default_factory=list)
    digests_to_delete: Set[str] = field(default_factory=set)
    kept_count: int = 0
    skipped_count: int = 0
    deferred_count: int = 0
    referenced_digests: Set[str] = field(default_factory=set)

    @property
    def tags_to_delete(self) -> List[str]:
        return [image.display_tag for image in self.images_to_delete]

    def to_dict(self) -> dict:
        return {
            "images_to_delete": [{"tag": i.display_tag, "digest": i.digest} for i in self.images_to_delete],
            "digests_to_delete": sorted(self.digests_to_delete),
            "referenced_digests": sorted(self.referenced_digests),
            "kept": self.kept_count,
            "skipped": self.skipped_count,
            "deferred": self.deferred_count,
        }


def compute_cutoff(now: datetime, age_cutoff_days: float) -> datetime:
    """Instant at or before which an image counts as old"""
    if age_cutoff_days < 0:
        raise ValueError(f"age_cutoff_days must be non-negative, got: {age_cutoff_days}")
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    try:
        return now - timedelta(days=age_cutoff_days)
    except OverflowError:
        # older than any representable push time
        return datetime.min.replace(tzinfo=timezone.utc)


def reconcile_digests(candidate_digests: Set[str], keep_digests: Set[str]) -> Set[str]:
    """Digests safe to delete: pushed by a deletable tag and referenced by no kept tag"""
    return candidate_digests - keep_digests


def classify(
    images: Iterable[Image],
    age_cutoff_days: float,
    project_id: str,
    exclusion_rules: ExclusionRules,
    now: Optional[datetime] = None,
    max_deletions: Optional[int] = None,
) -> RetentionDecision:
    """Partition a project's images into delete and keep.

    Exclusion rules win over age, an image without a push time is kept, and an
    image without a tag is skipped altogether (it cannot be addressed by the
    delete call).

    With max_deletions set, old images past the limit are deferred: they stay
    for this run and the digests they point at count as kept.

    Args:
        images: Every image of the project, in fetch order
        age_cutoff_days: Images pushed at or before now minus this many days are old
        project_id: Project the images belong to, for project-scoped exclusions
        exclusion_rules: Tags never to delete
        now: Reference instant (defaults to the current UTC time)
        max_deletions: Delete at most this many tags (None for no limit)

    Returns:
        RetentionDecision with the ordered tags to delete and the safe digests
    """
    now = now or datetime.now(timezone.utc)
    cutoff = compute_cutoff(now, age_cutoff_days)

    logger.info(f"Filtering images older than {age_cutoff_days} days (before {cutoff.isoformat()})")
    logger.info(f"Excluded tags: {exclusion_rules.describe()}")

    decision = RetentionDecision()
    candidate_digests: Set[str] = set()
    keep_digests: Set[str] = set()

    def keep(image: Image) -> None:
        decision.kept_count += 1
        if image.digest:
            keep_digests.add(image.digest)

    for image in images:
        if not image.tag:
            logger.info(f"⊗ Skipping image with no tag. Image digest: {image.digest or 'unknown'}")
            decision.skipped_count += 1
            continue

        tag_name = extract_tag_name(image.tag)

        reason = exclusion_rules.match(project_id, tag_name)
        if reason:
            logger.info(f"⊗ Excluding image: {tag_name} ({reason})")
            keep(image)
            continue

        if image.pushed_at is None:
            logger.warning(f"⚠️  Image {tag_name} has no pushedAt date, keeping it")
            keep(image)
            continue

        if image.pushed_at > cutoff:
            logger.info(f"⊗ Keeping image: {tag_name} (pushed: {image.pushed_at.date().isoformat()}, too recent)")
            keep(image)
        elif max_deletions is not None and len(decision.images_to_delete) >= max_deletions:
            logger.info(f"⏸  Deferring old image: {tag_name} (deletion limit of {max_deletions} reached)")
            decision.deferred_count += 1
            if image.digest:
                keep_digests.add(image.digest)
        else:
            logger.info(f"✓ Marking for deletion: {tag_name} (pushed: {image.pushed_at.date().isoformat()})")
            decision.images_to_delete.append(ImageToDelete(display_tag=tag_name, digest=image.digest))
            if image.digest:
                candidate_digests.add(image.digest)

    decision.digests_to_delete = reconcile_digests(candidate_digests, keep_digests)
    decision.referenced_digests = candidate_digests & keep_digests

    if decision.referenced_digests:
        logger.info(
            f"ℹ️  Skipping {len(decision.referenced_digests)} digest(s) that are still referenced by other tags"
        )

    return decision
