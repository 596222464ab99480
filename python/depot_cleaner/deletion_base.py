"""
Base class for deletion scripts to reduce code duplication and standardize behavior.

This module provides common functionality for deletion entry points:
- Standardized confirmation prompts
- Shared Depot client and configuration
- Logging consistency
"""

from typing import Any, Dict, Optional

from depot_cleaner.config_manager import ConfigManager, config_manager as default_config_manager
from depot_cleaner.depot_client import DepotClient
from depot_cleaner.logging_utils import get_logger


class BaseDeletionScript:
    """Base class for deletion scripts with common functionality"""

    def __init__(self, client: Optional[DepotClient] = None, config: Optional[ConfigManager] = None):
        """Initialize base deletion script

        Args:
            client: Depot API client (default: built from config)
            config: Configuration (default: global config_manager)
        """
        self.config = config or default_config_manager
        self.client = client or DepotClient(self.config)
        self.logger = get_logger(self.__class__.__name__)

    def confirm_deletion(self, count: int, item_type: str, force: bool = False) -> bool:
        """Standardized confirmation prompt for deletions

        Args:
            count: Number of items to be deleted
            item_type: Type of items (e.g., "images", "projects")
            force: If True, skip confirmation and return True

        Returns:
            True if user confirmed, False otherwise
        """
        if force:
            self.logger.warning("⚠️  Force mode enabled - skipping confirmation prompt")
            return True

        print("\n" + "=" * 60)
        print("⚠️  WARNING: You are about to DELETE images from the Depot registry!")
        print("=" * 60)
        print(f"This will delete old images from {count} {item_type}.")
        print("This action cannot be undone.")
        print("=" * 60)

        while True:
            response = input("Are you sure you want to proceed with deletion? (yes/no): ").lower().strip()
            if response in ["yes", "y"]:
                return True
            elif response in ["no", "n"]:
                return False
            else:
                print("Please enter 'yes' or 'no'.")

    def log_summary(self, summary: Dict[str, Any], dry_run: bool = False) -> None:
        """Log a standardized deletion summary

        Args:
            summary: Dictionary with summary information
            dry_run: Whether this was a dry run
        """
        mode = "DRY RUN: " if dry_run else ""
        self.logger.info(f"📊 {mode}Deletion Summary:")

        if "projects" in summary:
            self.logger.info(f"   Projects processed: {summary['projects']}")
        if "planned" in summary:
            self.logger.info(f"   {'Would delete' if dry_run else 'Planned'}: {summary['planned']}")
        if "deleted" in summary and not dry_run:
            self.logger.info(f"   Images deleted: {summary['deleted']}")
        if summary.get("failed"):
            self.logger.info(f"   Errors: {summary['failed']}")
        if summary.get("failed_projects"):
            self.logger.info(f"   Projects that failed: {summary['failed_projects']}")
        if "results_file" in summary:
            self.logger.info(f"   Results saved to: {summary['results_file']}")
