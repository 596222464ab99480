#!/usr/bin/env python3
"""
Tag matching utilities for Depot registry image tags.

Listing responses report tags as full references such as
``registry.depot.dev/<projectId>:<tagName>``. Exclusion rules are written
against the trailing tag name, either globally (``latest``) or for a single
project (``<projectId>:staging``).
"""

from typing import Iterable, List, Optional


def extract_tag_name(tag: str) -> str:
    """Extract the trailing tag name from a full image reference.

    Args:
        tag: Full reference (e.g., "registry.depot.dev/abc123:v1.2.0")

    Returns:
        The text after the last ':' (e.g., "v1.2.0"), or the tag unchanged when it has no ':'
    """
    parts = tag.split(':')
    if len(parts) > 1:
        return parts[-1]
    return tag


def digest_to_tag(digest: str) -> str:
    """Rewrite a digest into the tag-shaped form accepted by DeleteImage.

    The delete endpoint addresses digests through the same parameter as tags,
    so "sha256:abc..." becomes "sha256-abc...". Only the first separator is replaced.
    """
    return digest.replace(':', '-', 1)


class ExclusionRules:
    """Tags that must never be deleted, regardless of age.

    Supported rule formats:
        "tagName"            excludes the tag from every project
        "projectId:tagName"  excludes the tag only from that project
    """

    def __init__(self, rules: Optional[Iterable[str]] = None):
        self.rules: List[str] = []
        for rule in rules or []:
            rule = str(rule).strip()
            if rule and rule not in self.rules:
                self.rules.append(rule)
        self._rule_set = frozenset(self.rules)

    def __iter__(self):
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def __repr__(self) -> str:
        return f"ExclusionRules({self.rules!r})"

    def match(self, project_id: str, tag_name: str) -> Optional[str]:
        """Check whether a tag is excluded for a project.

        Args:
            project_id: Project being processed
            tag_name: Trailing tag name (see extract_tag_name)

        Returns:
            A human-readable reason when excluded, otherwise None
        """
        if tag_name in self._rule_set:
            return "globally excluded"
        if f"{project_id}:{tag_name}" in self._rule_set:
            return f"excluded for project {project_id}"
        return None

    def is_excluded(self, project_id: str, tag_name: str) -> bool:
        return self.match(project_id, tag_name) is not None

    def describe(self) -> str:
        return ", ".join(self.rules) if self.rules else "(none)"
