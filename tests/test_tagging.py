# tests/test_tagging.py
"""
Tagging analyzer tests: required tags, key spelling drift, environment
value drift, system-resource exclusion and scoring.
"""

import factories as f
from analyzers.tagging import TaggingAnalyzer, analyze_tagging, normalize_tag_key
from models import Severity
from resources import to_resources

FULL_TAGS = {"environment": "prod", "owner": "team-a", "cost-center": "cc1", "application": "web"}


def tagged(name, tags):
    return f.simple(name, "Microsoft.Storage/storageAccounts", tags=tags)


def test_empty_store_scores_100():
    result = analyze_tagging([])
    assert result.score == 100
    assert result.findings == ()
    assert result.compliance_rate == 100.0


def test_fully_tagged_resources_have_no_findings():
    result = analyze_tagging(to_resources([tagged("a", FULL_TAGS), tagged("b", dict(FULL_TAGS))]))
    assert result.findings == ()
    assert result.tagged_resources == 2
    assert result.score == 100


def test_key_casing_inconsistency_reported_once():
    records = [tagged("res-a", {"Environment": "prod"}), tagged("res-b", {"environment": "prod"})]
    result = analyze_tagging(to_resources(records))
    casing = [x for x in result.findings if x.category == "Inconsistent"]
    assert len(casing) == 1
    assert casing[0].severity == Severity.LOW
    assert set(casing[0].resources) == {"res-a", "res-b"}


def test_separator_variants_normalize_together():
    assert normalize_tag_key("Cost-Center") == normalize_tag_key("cost_center") == normalize_tag_key("CostCenter")


def test_required_tag_lookup_is_case_insensitive():
    result = analyze_tagging(to_resources([tagged("a", {k.upper(): v for k, v in FULL_TAGS.items()})]))
    assert [x for x in result.findings if x.category == "Missing"] == []


def test_missing_tag_findings_aggregate_resources():
    records = [tagged("a", {"environment": "dev"}), tagged("b", {}), tagged("c", FULL_TAGS)]
    result = analyze_tagging(to_resources(records))
    missing = {x.issue: x for x in result.findings if x.category == "Missing"}

    owner = missing["2 resources missing 'owner' tag"]
    assert owner.severity == Severity.HIGH
    assert owner.resources == ("a", "b")
    assert missing["1 resources missing 'environment' tag"].severity == Severity.MEDIUM
    assert missing["2 resources missing 'cost-center' tag"].severity == Severity.HIGH
    assert result.tagged_resources == 2
    assert result.total_resources == 3


def test_environment_value_drift():
    values = ["prod", "Production", "dev", "staging", "qa", "uat"]
    records = [tagged(f"r{i}", {"env": v}) for i, v in enumerate(values)]
    result = analyze_tagging(to_resources(records), required_tags=["env"])
    drift = [x for x in result.findings if "Environment tag has" in x.issue]
    assert len(drift) == 1
    assert drift[0].severity == Severity.MEDIUM


def test_five_environment_values_are_tolerated():
    records = [tagged(f"r{i}", {"environment": v}) for i, v in enumerate(["a", "b", "c", "d", "e"])]
    result = analyze_tagging(to_resources(records), required_tags=["environment"])
    assert result.findings == ()


def test_system_resources_are_excluded():
    records = [f.simple("NetworkWatcher_westeurope", "Microsoft.Network/networkWatchers"), tagged("a", FULL_TAGS)]
    result = analyze_tagging(to_resources(records))
    assert result.total_resources == 1
    assert result.findings == ()


def test_custom_required_tags():
    result = analyze_tagging(to_resources([tagged("a", {"team": "x"})]), required_tags=["team"])
    assert result.required_tags == ("team",)
    assert result.findings == ()


def test_score_floor():
    records = [tagged(f"r{i}", {}) for i in range(50)]
    records += [tagged(f"k{i}", {f"Key{i % 3}": "v", f"key{i % 3}": "v"}) for i in range(6)]
    result = analyze_tagging(to_resources(records))
    assert 0 <= result.score <= 100


def test_analysis_is_idempotent(scenario):
    analyzer = TaggingAnalyzer()
    first = analyzer.analyze(scenario)
    second = analyzer.analyze(scenario)
    assert first == second
    assert first == analyze_tagging(scenario)
