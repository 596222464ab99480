"""Tests for depot_cleaner/tag_matching.py"""

from depot_cleaner.tag_matching import ExclusionRules, digest_to_tag, extract_tag_name


class TestExtractTagName:
    def test_full_reference(self):
        assert extract_tag_name("registry.depot.dev/abc123:v1.2.0") == "v1.2.0"

    def test_registry_with_port(self):
        """Only the text after the last colon is the tag"""
        assert extract_tag_name("localhost:5000/abc123:latest") == "latest"

    def test_bare_tag(self):
        assert extract_tag_name("latest") == "latest"


class TestDigestToTag:
    def test_replaces_separator(self):
        assert digest_to_tag("sha256:abc123") == "sha256-abc123"

    def test_only_first_separator(self):
        assert digest_to_tag("sha256:abc:def") == "sha256-abc:def"


class TestExclusionRules:
    def test_global_rule(self):
        rules = ExclusionRules(["latest"])

        assert rules.match("p1", "latest") == "globally excluded"
        assert rules.match("p2", "latest") == "globally excluded"

    def test_project_rule_applies_only_to_that_project(self):
        rules = ExclusionRules(["p1:staging"])

        assert rules.match("p1", "staging") == "excluded for project p1"
        assert rules.match("p2", "staging") is None
        assert not rules.is_excluded("p2", "staging")

    def test_no_match(self):
        rules = ExclusionRules(["latest", "p1:staging"])

        assert rules.match("p1", "v1") is None

    def test_normalizes_entries(self):
        """Blank and duplicate entries are dropped, whitespace trimmed"""
        rules = ExclusionRules([" latest ", "", "latest", "stable"])

        assert list(rules) == ["latest", "stable"]
        assert len(rules) == 2
        assert rules.describe() == "latest, stable"

    def test_empty_rules(self):
        rules = ExclusionRules()

        assert rules.match("p1", "latest") is None
        assert rules.describe() == "(none)"
