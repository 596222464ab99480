"""Apply a retention decision through the DeleteImage API."""

from dataclasses import dataclass
from typing import Iterable, List, Sequence

from depot_cleaner.logging_utils import get_logger
from depot_cleaner.retention import ImageToDelete
from depot_cleaner.tag_matching import digest_to_tag

logger = get_logger(__name__)


@dataclass
class DeletionOutcome:
    """Counts for one project.

    Digest counters are informational: digest failures never add to error_count.
    """

    success_count: int = 0
    error_count: int = 0
    digest_success_count: int = 0
    digest_error_count: int = 0


def apply_deletions(
    client,
    project_id: str,
    images_to_delete: Sequence[ImageToDelete],
    safe_digests: Iterable[str],
    dry_run: bool = True,
) -> DeletionOutcome:
    """Delete the planned tags, then the digests no remaining tag references.

    Nothing is deleted when no tag is planned, even if digests are given, and
    dry runs never call the API. A failed tag deletion counts every planned tag
    as an error; digest deletion is still attempted afterwards and its failure
    is only logged.

    Args:
        client: Object exposing ``delete_image(project_id, image_tags)``
        project_id: Project to delete from
        images_to_delete: Tags selected by the retention policy
        safe_digests: Digests confirmed unreferenced by any kept tag
        dry_run: If True, report the plan without deleting anything

    Returns:
        DeletionOutcome for the project
    """
    outcome = DeletionOutcome()
    if not images_to_delete:
        logger.info("No images to delete for this project.")
        return outcome

    tags_to_delete: List[str] = [image.display_tag for image in images_to_delete]
    digests = sorted(safe_digests)

    logger.info(f"=== {'DRY RUN' if dry_run else 'DELETING'} ===")
    logger.info(f"Images to delete: {len(tags_to_delete)}")
    for tag in tags_to_delete:
        logger.info(f"  - {tag}")
    if digests:
        logger.info(f"Digests to delete: {len(digests)} (only those with no remaining references)")

    if dry_run:
        return outcome

    logger.info(f"Deleting {len(tags_to_delete)} image tag(s)...")
    try:
        client.delete_image(project_id, tags_to_delete)
        logger.info(f"✓ Successfully deleted {len(tags_to_delete)} tag(s)")
        outcome.success_count += len(tags_to_delete)
    except Exception as e:
        logger.error(f"✗ Failed to delete tags: {e}")
        outcome.error_count += len(tags_to_delete)

    if digests:
        digest_tags = [digest_to_tag(digest) for digest in digests]
        logger.info(f"Deleting {len(digest_tags)} image digest(s)...")
        try:
            client.delete_image(project_id, digest_tags)
            logger.info(f"✓ Successfully deleted {len(digest_tags)} digest(s)")
            outcome.digest_success_count += len(digest_tags)
        except Exception as e:
            # Tags were the primary target; digest failures are not counted as errors
            logger.error(f"✗ Failed to delete digests: {e}")
            outcome.digest_error_count += len(digest_tags)

    return outcome
