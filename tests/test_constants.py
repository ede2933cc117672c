"""Tests for the static lookup tables in constants.py.

Verifies the tables hold the values dashboards rely on and that no module
keeps its own copy of them.
"""

import ast
from pathlib import Path

import pulsemeter.constants as constants

SRC = Path(__file__).parent.parent / "src" / "pulsemeter"


class TestTables:
    def test_time_constants(self):
        assert constants.SECONDS_PER_DAY == 86400
        assert constants.SECONDS_PER_WEEK == 604800

    def test_communication_is_a_synonym(self):
        assert constants.CATEGORY_SYNONYMS == {"communication": "communicating"}

    def test_coding_folds_debugging(self):
        assert constants.CATEGORY_FOLDS == {"coding": ("debugging",)}

    def test_display_baseline_is_three_hours(self):
        assert constants.DISPLAY_BASELINE_MINUTES == 180

    def test_flow_thresholds(self):
        assert constants.FLOW_MAX_GAP_MINUTES == 5
        assert constants.FLOW_MIN_MINUTES == 20

    def test_page_limits(self):
        assert constants.DEFAULT_PAGE_SIZE <= constants.MAX_PAGE_SIZE == 50

    def test_site_lists_are_lowercase(self):
        for site in constants.SOCIAL_MEDIA_SITES + constants.GROWTH_SITES:
            assert site == site.lower()

    def test_site_lists_do_not_overlap(self):
        assert not set(constants.SOCIAL_MEDIA_SITES) & set(constants.GROWTH_SITES)


class TestNoDuplicateDefinitions:
    """Tables are imported from constants, never redefined."""

    def _get_module_level_assignments(self, filepath: Path) -> set[str]:
        tree = ast.parse(filepath.read_text())
        names = set()
        for node in ast.iter_child_nodes(tree):
            targets = node.targets if isinstance(node, ast.Assign) else (
                [node.target] if isinstance(node, ast.AnnAssign) else []
            )
            for target in targets:
                if isinstance(target, ast.Name) and target.id.isupper():
                    names.add(target.id)
        return names

    def test_aggregate_has_no_table_definitions(self):
        tables = {"CATEGORY_SYNONYMS", "CATEGORY_FOLDS", "SOCIAL_MEDIA_SITES", "GROWTH_SITES"}
        overlap = self._get_module_level_assignments(SRC / "aggregate.py") & tables
        assert overlap == set(), f"Tables still defined in aggregate.py: {overlap}"

    def test_repository_has_no_flow_thresholds(self):
        thresholds = {"FLOW_MAX_GAP_MINUTES", "FLOW_MIN_MINUTES", "UNSET_PROJECT_TOKEN"}
        overlap = self._get_module_level_assignments(SRC / "repository.py") & thresholds
        assert overlap == set(), f"Constants still defined in repository.py: {overlap}"

    def test_aggregate_imports_from_constants(self):
        assert "from .constants import" in (SRC / "aggregate.py").read_text()
