#!/usr/bin/env python3
"""
Delete old images from the Depot registry.

For every selected project this script lists all registry images, marks tags
pushed more than N days ago for deletion (except excluded tags), and deletes
them together with the digests that no remaining tag still references.
Runs are dry runs unless --confirm is given.

Configuration:
  Depot token is sourced from (in priority order):
  1. DEPOT_TOKEN environment variable
  2. config.yaml depot.token field

  Excluded tags come from config.yaml retention.excluded_tags (default:
  latest, stable, production), the EXCLUDED_TAGS environment variable
  (comma separated, replaces the config list) and --exclude flags. Rules are
  either "tagName" (every project) or "projectId:tagName" (one project).

Usage examples:
  # Dry run for all projects (images older than 30 days)
  python delete_old_images.py

  # Dry run for all projects (images older than 60 days)
  python delete_old_images.py 60

  # Actually delete old images from all projects
  python delete_old_images.py 30 --confirm

  # Dry run for a specific project (60 days)
  python delete_old_images.py abc123 60

  # Actually delete from a specific project, keeping "staging" there
  python delete_old_images.py abc123 30 --confirm --exclude abc123:staging

  # Save the deletion plan as JSON
  python delete_old_images.py --output reports/deletion-plan.json
"""

import argparse
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import requests

from depot_cleaner.config_manager import ConfigManager, ConfigValidationError, config_manager, validate_days_old
from depot_cleaner.deletion_base import BaseDeletionScript
from depot_cleaner.depot_client import DepotClient
from depot_cleaner.error_utils import ActionableError, create_config_error, create_depot_connection_error
from depot_cleaner.image_deleter import DeletionOutcome, apply_deletions
from depot_cleaner.image_metadata import Image, Project
from depot_cleaner.logging_utils import get_logger, log_exception, setup_logging
from depot_cleaner.pagination import fetch_all
from depot_cleaner.report_utils import format_summary_table, save_json
from depot_cleaner.retention import RetentionDecision, classify
from depot_cleaner.tag_matching import ExclusionRules

SEPARATOR = "=" * 80


@dataclass
class ProjectResult:
    """Outcome of processing one project"""

    project: Project
    image_count: int = 0
    decision: Optional[RetentionDecision] = None
    outcome: DeletionOutcome = field(default_factory=DeletionOutcome)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project.project_id,
            "name": self.project.name,
            "images": self.image_count,
            "decision": self.decision.to_dict() if self.decision else None,
            "deleted": self.outcome.success_count,
            "errors": self.outcome.error_count,
            "digests_deleted": self.outcome.digest_success_count,
            "digest_errors": self.outcome.digest_error_count,
            "error": self.error,
        }


@dataclass
class RunSummary:
    """Aggregated counts across every processed project"""

    dry_run: bool
    age_cutoff_days: float
    results: List[ProjectResult] = field(default_factory=list)
    cancelled: bool = False

    @property
    def total_success(self) -> int:
        return sum(r.outcome.success_count for r in self.results)

    @property
    def total_errors(self) -> int:
        return sum(r.outcome.error_count for r in self.results)

    @property
    def total_projects(self) -> int:
        return len(self.results)

    @property
    def total_planned(self) -> int:
        return sum(len(r.decision.images_to_delete) for r in self.results if r.decision)

    @property
    def failed_projects(self) -> List[str]:
        return [r.project.project_id for r in self.results if r.error]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "days_old": self.age_cutoff_days,
            "total_projects": self.total_projects,
            "total_planned": self.total_planned,
            "total_success": self.total_success,
            "total_errors": self.total_errors,
            "cancelled": self.cancelled,
            "projects": [r.to_dict() for r in self.results],
        }


class OldImageDeleter(BaseDeletionScript):
    """Applies the age/exclusion retention policy to one or all Depot projects"""

    def __init__(
        self,
        exclusion_rules: Optional[ExclusionRules] = None,
        client: Optional[DepotClient] = None,
        config: Optional[ConfigManager] = None,
        max_deletions: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        super().__init__(client=client, config=config)
        if exclusion_rules is None:
            exclusion_rules = ExclusionRules(self.config.get_excluded_tags())
        self.exclusion_rules = exclusion_rules
        self.page_size = self.config.get_page_size()
        self.max_deletions = max_deletions
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def list_all_projects(self) -> List[Project]:
        """List every project visible to the token"""
        self.logger.info("Fetching all projects...")
        raw = fetch_all(
            self.client.list_projects,
            page_size_cap=self.page_size,
            items_key="projects",
            label="projects",
        )
        projects = [Project.from_api(p) for p in raw]
        self.logger.info(f"Found {len(projects)} projects")
        return projects

    def list_all_images(self, project_id: str) -> List[Image]:
        """List every registry image of a project.

        Always the full set: digest reconciliation needs every tag, including
        the ones a deletion limit leaves in place.
        """
        self.logger.info(f"Fetching images for project {project_id}...")
        raw = fetch_all(
            self.client.list_images,
            {"project_id": project_id},
            page_size_cap=self.page_size,
            items_key="images",
            label="images",
        )
        self.logger.info(f"Total images fetched: {len(raw)}")
        return [Image.from_api(item) for item in raw]

    def resolve_projects(self, project_id: Optional[str] = None) -> List[Project]:
        """The explicitly named project, or the whole project directory"""
        if project_id:
            self.logger.info(f"=== Processing single project: {project_id} ===")
            return [Project(project_id=project_id)]
        self.logger.info("=== Processing all projects ===")
        return self.list_all_projects()

    def process_project(self, project: Project, age_cutoff_days: float, dry_run: bool) -> ProjectResult:
        """Fetch, classify and delete for one project.

        Any error is logged and recorded on the result instead of being raised,
        so one failing project never stops the others.
        """
        self.logger.info(SEPARATOR)
        self.logger.info(f"Processing project: {project.display_name} ({project.project_id})")
        self.logger.info(SEPARATOR)

        result = ProjectResult(project=project)
        try:
            images = self.list_all_images(project.project_id)
            result.image_count = len(images)
            if not images:
                self.logger.info("No images found for this project.")
                return result

            result.decision = classify(
                images,
                age_cutoff_days,
                project.project_id,
                self.exclusion_rules,
                now=self.clock(),
                max_deletions=self.max_deletions,
            )
            result.outcome = apply_deletions(
                self.client,
                project.project_id,
                result.decision.images_to_delete,
                result.decision.digests_to_delete,
                dry_run=dry_run,
            )
        except Exception as e:
            log_exception(self.logger, f"Error processing project {project.display_name}: {e}", exc_info=e)
            result.error = str(e)
            result.outcome = DeletionOutcome()
        return result

    def process_projects(self, projects: Sequence[Project], age_cutoff_days: float, dry_run: bool) -> RunSummary:
        """Process projects one after another and aggregate their counts"""
        summary = RunSummary(dry_run=dry_run, age_cutoff_days=age_cutoff_days)
        if not projects:
            self.logger.info("No projects found.")
            return summary
        for project in projects:
            summary.results.append(self.process_project(project, age_cutoff_days, dry_run))
        return summary

    def run(
        self,
        project_id: Optional[str] = None,
        age_cutoff_days: Any = 30,
        dry_run: bool = True,
        force: bool = False,
        output_path: Optional[str] = None,
    ) -> RunSummary:
        """Resolve the target projects, process each, and report the summary.

        Args:
            project_id: Single project to process; None processes every project
            age_cutoff_days: Delete images pushed at least this many days ago
            dry_run: If True, only report what would be deleted
            force: Skip the confirmation prompt enabled by security.require_confirmation
            output_path: Where to save the JSON report (None for no report)

        Returns:
            RunSummary with totals across all processed projects

        Raises:
            ConfigValidationError: If age_cutoff_days is invalid (raised before any API call)
        """
        age_cutoff_days = validate_days_old(age_cutoff_days)
        projects = self.resolve_projects(project_id)

        if not dry_run and projects and self.config.requires_confirmation():
            if not self.confirm_deletion(len(projects), "project(s)", force=force):
                self.logger.info("Deletion cancelled by user.")
                return RunSummary(dry_run=dry_run, age_cutoff_days=age_cutoff_days, cancelled=True)

        summary = self.process_projects(projects, age_cutoff_days, dry_run)
        results_file = None
        if output_path is not None:
            results_file = save_json(output_path, summary.to_dict(), timestamp=self.config.timestamp_reports())
        self.report_summary(summary, project_id, results_file=results_file)
        return summary

    def report_summary(
        self, summary: RunSummary, project_id: Optional[str] = None, results_file: Optional[str] = None
    ) -> None:
        """Log the final summary table and, for dry runs, how to apply the plan"""
        self.logger.info(SEPARATOR)
        self.logger.info("=== FINAL SUMMARY ===")
        self.logger.info(SEPARATOR)

        if summary.results:
            rows = [
                {
                    "project": r.project.display_name,
                    "images": r.image_count,
                    "planned": len(r.decision.images_to_delete) if r.decision else 0,
                    "deleted": r.outcome.success_count,
                    "errors": r.outcome.error_count,
                    "error": r.error,
                }
                for r in summary.results
            ]
            self.logger.info("\n" + format_summary_table(rows, summary.dry_run))

        totals = {
            "projects": summary.total_projects,
            "planned": summary.total_planned,
            "deleted": summary.total_success,
            "failed": summary.total_errors,
            "failed_projects": ", ".join(summary.failed_projects),
        }
        if results_file:
            totals["results_file"] = results_file
        self.log_summary(totals, dry_run=summary.dry_run)

        if summary.dry_run:
            self.logger.warning("⚠️  This was a DRY RUN. No images were actually deleted.")
            if summary.total_planned:
                target = f"{project_id} " if project_id else ""
                self.logger.info("To actually delete images, run with --confirm flag:")
                self.logger.info(f"  python delete_old_images.py {target}{summary.age_cutoff_days} --confirm")


def _is_number(value: str) -> bool:
    try:
        float(value)
        return True
    except ValueError:
        return False


def resolve_positionals(positionals: Sequence[str], default_days: Any) -> Tuple[Optional[str], Any]:
    """Split "[project-id] [days-old]" positionals.

    A first value that is not a number is the project id; otherwise it is days-old.

    Returns:
        (project_id, days_old)
    """
    if len(positionals) > 2:
        raise ConfigValidationError(f"Too many positional arguments: {' '.join(positionals)}")
    if not positionals:
        return None, default_days
    if not _is_number(positionals[0]):
        days = positionals[1] if len(positionals) > 1 else default_days
        return positionals[0], days
    if len(positionals) > 1:
        raise ConfigValidationError(f"Unexpected argument after days-old: {positionals[1]}")
    return None, positionals[0]


def parse_arguments(argv: Optional[Sequence[str]] = None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="Delete old images from the Depot registry (default is dry-run)",
        epilog="Excluded tags: configure retention.excluded_tags, EXCLUDED_TAGS, or --exclude",
    )
    parser.add_argument(
        "positionals",
        nargs="*",
        metavar="[project-id] [days-old]",
        help="Optional project ID (all projects if omitted) and age in days (default: 30)",
    )
    parser.add_argument("--confirm", action="store_true", help="Actually delete images (default is dry run)")
    parser.add_argument("--force", action="store_true", help="Skip the confirmation prompt when using --confirm")
    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="TAG",
        help='Additional tag to keep, "tagName" or "projectId:tagName" (repeatable)',
    )
    parser.add_argument(
        "--max-images",
        type=int,
        metavar="N",
        help="Delete at most N old images per project; the rest wait for a later run",
    )
    parser.add_argument(
        "--output",
        nargs="?",
        const="",
        metavar="PATH",
        help="Save the deletion plan and results as JSON (default path: reports.output_dir/reports.deletion_plan)",
    )
    parser.add_argument("--config", help="Path to config.yaml (default: CONFIG_FILE env var or ./config.yaml)")
    parser.add_argument("--show-config", action="store_true", help="Print the effective configuration and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level (overrides LOG_LEVEL)")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main function"""
    setup_logging("INFO")
    logger = get_logger(__name__)
    args = parse_arguments(argv)

    try:
        config = ConfigManager(config_file=args.config) if args.config else config_manager
        setup_logging("DEBUG" if args.verbose else config.get_log_level())
        project_id, days_old = resolve_positionals(args.positionals, config.get_days_old())
    except (ConfigValidationError, ValueError) as e:
        logger.error(f"❌ Error: {e}")
        return 1

    if args.show_config:
        config.print_config()
        return 0

    try:
        days_old = validate_days_old(days_old)
    except ConfigValidationError as e:
        logger.error(str(create_config_error("days-old", days_old, str(e))))
        return 1

    if args.max_images is not None and args.max_images < 0:
        logger.error(f"❌ Error: --max-images must be non-negative, got: {args.max_images}")
        return 1

    dry_run = not args.confirm
    if dry_run:
        logger.info("🔍 DRY RUN MODE (default)")
        logger.info("Images will NOT be deleted. Use --confirm to actually delete images.")
    else:
        logger.info("🗑️  DELETE MODE")
        logger.info("Images WILL be deleted!")

    exclusion_rules = ExclusionRules(config.get_excluded_tags() + list(args.exclude))
    output_path = None
    if args.output is not None:
        output_path = args.output or config.get_deletion_plan_path()

    try:
        with DepotClient(config) as client:
            deleter = OldImageDeleter(
                exclusion_rules=exclusion_rules, client=client, config=config, max_deletions=args.max_images
            )
            deleter.run(project_id, days_old, dry_run=dry_run, force=args.force, output_path=output_path)
    except ActionableError as e:
        logger.error(str(e))
        return 1
    except requests.ConnectionError as e:
        logger.error(str(create_depot_connection_error(config.get_api_url(), e)))
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 1
    except Exception as e:
        log_exception(logger, "Error in main", exc_info=e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
