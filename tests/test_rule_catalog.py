"""
Unit tests for the clinical rule catalog
"""

import pytest
from pydantic import ValidationError

from medguide.schemas import AlertSeverity
from medguide.exceptions import RuleDefinitionError
from medguide.modules.rule_catalog import (
    DEFAULT_CATALOG,
    DuplicationRule,
    InteractionRule,
    RuleCategory,
    SingleDrugRule,
    build_rule_catalog,
    get_rule_catalog,
)


def rule_definition(**overrides):
    definition = {
        "id": "TEST_RULE",
        "title": "Test Rule",
        "category": "BEERS",
        "severity": "MEDIUM",
        "description_template": "{drug} is flagged.",
        "recommendation": "Review.",
        "citation": "Test Guideline",
        "drug_keywords": ["testdrug"],
    }
    definition.update(overrides)
    return definition


class TestDefaultCatalog:
    """Test the built-in rule catalog"""

    def test_every_category_present(self):
        for category in RuleCategory:
            assert DEFAULT_CATALOG.by_category(category), category

    def test_beers_rules(self):
        beers = DEFAULT_CATALOG.by_category(RuleCategory.BEERS)

        assert len(beers) == 9
        assert all(rule.age_min == 65 for rule in beers)

    def test_variants_match_categories(self):
        assert all(r.category == RuleCategory.INTERACTION for r in DEFAULT_CATALOG.interaction_rules)
        assert all(r.category == RuleCategory.DUPLICATION for r in DEFAULT_CATALOG.duplication_rules)
        assert len(DEFAULT_CATALOG.single_drug_rules) + len(DEFAULT_CATALOG.interaction_rules) \
            + len(DEFAULT_CATALOG.duplication_rules) == len(DEFAULT_CATALOG)

    def test_known_rules(self):
        ppi = DEFAULT_CATALOG.get("BEERS_PPI_ELDERLY")
        warfarin_ppi = DEFAULT_CATALOG.get("INT_WARFARIN_PPI")

        assert isinstance(ppi, SingleDrugRule)
        assert ppi.severity == AlertSeverity.MEDIUM
        assert isinstance(warfarin_ppi, InteractionRule)
        assert warfarin_ppi.severity == AlertSeverity.HIGH
        assert isinstance(DEFAULT_CATALOG.get("DUP_CCB"), DuplicationRule)
        assert "DD_METFORMIN_CKD" in DEFAULT_CATALOG
        assert DEFAULT_CATALOG.get("NOPE") is None

    def test_loop_diuretic_has_heart_failure_exception(self):
        rule = DEFAULT_CATALOG.get("STOPP_LOOP_DIURETIC_HTN")

        assert "heart failure" in rule.excluded_conditions

    def test_enabled_subset_preserves_order(self):
        subset = DEFAULT_CATALOG.enabled(["DUPLICATION", RuleCategory.BEERS])
        expected = [r.id for r in DEFAULT_CATALOG if r.category in (RuleCategory.BEERS, RuleCategory.DUPLICATION)]

        assert [r.id for r in subset] == expected

    def test_variants_partitioned_once(self):
        assert DEFAULT_CATALOG.single_drug_rules is DEFAULT_CATALOG.single_drug_rules
        assert DEFAULT_CATALOG.interaction_rules is DEFAULT_CATALOG.interaction_rules
        assert DEFAULT_CATALOG.duplication_rules is DEFAULT_CATALOG.duplication_rules

    def test_enabled_catalog_reused(self):
        assert get_rule_catalog() is get_rule_catalog()

    def test_rules_are_immutable(self):
        rule = DEFAULT_CATALOG.get("BEERS_PPI_ELDERLY")

        with pytest.raises(ValidationError):
            rule.severity = AlertSeverity.LOW


class TestAlertConstruction:
    """Test alert rendering from rule templates"""

    def test_create_alert(self):
        alert = DEFAULT_CATALOG.get("BEERS_TRAMADOL").create_alert("Tramadol 50mg")

        assert alert.title == "Beers Criteria: Tramadol"
        assert alert.description.startswith("Tramadol 50mg is associated")
        assert alert.citation
        assert alert.citation_url

    def test_template_without_placeholder(self):
        rule = DEFAULT_CATALOG.get("BEERS_SLIDING_SCALE")

        assert rule.describe("Actrapid") == rule.description_template


class TestCatalogConstruction:
    """Test fail-fast validation of rule definitions"""

    def test_single_is_default_variant(self):
        catalog = build_rule_catalog([rule_definition()])

        assert isinstance(catalog.get("TEST_RULE"), SingleDrugRule)

    def test_interaction_without_partner_keywords(self):
        definition = rule_definition(id="INT_BROKEN", check_type="INTERACTION", category="INTERACTION")

        with pytest.raises(RuleDefinitionError) as exc_info:
            build_rule_catalog([definition])

        assert exc_info.value.rule_id == "INT_BROKEN"
        assert "interaction_drug_keywords" in str(exc_info.value)

    def test_duplicate_ids_rejected(self):
        with pytest.raises(RuleDefinitionError):
            build_rule_catalog([rule_definition(), rule_definition()])

    def test_unknown_template_placeholder_rejected(self):
        with pytest.raises(RuleDefinitionError):
            build_rule_catalog([rule_definition(description_template="{drug} with {dose}")])

    def test_empty_keywords_rejected(self):
        with pytest.raises(RuleDefinitionError):
            build_rule_catalog([rule_definition(drug_keywords=[])])
        with pytest.raises(RuleDefinitionError):
            build_rule_catalog([rule_definition(drug_keywords=["  "])])

    def test_fields_of_other_variants_rejected(self):
        """A duplication rule cannot carry age or condition gates"""
        definition = rule_definition(check_type="DUPLICATION", category="DUPLICATION", age_min=65)

        with pytest.raises(RuleDefinitionError):
            build_rule_catalog([definition])

    def test_unnamed_rule_identified_by_position(self):
        definition = rule_definition()
        del definition["id"]

        with pytest.raises(RuleDefinitionError) as exc_info:
            build_rule_catalog([rule_definition(id="OK"), definition])

        assert exc_info.value.rule_id == "#1"
