# tests/test_priority.py
import factories as f
from analyzers import run_all
from analyzers.priority import priority_actions
from models import (
    ComplianceAnalysis,
    ComplianceFinding,
    CostAnalysis,
    CostFinding,
    SecurityAnalysis,
    SecurityFinding,
    Severity,
    TagFinding,
    TaggingAnalysis,
)
from resources import to_resources


def sec(severity):
    return SecurityFinding(severity, "NSG", ("nsg",), f"{severity.value} issue", "impact", "fix")


def test_priority_merge_rules():
    security = SecurityAnalysis(findings=(sec(Severity.CRITICAL), sec(Severity.HIGH), sec(Severity.MEDIUM)))
    cost = CostAnalysis(findings=(
        CostFinding(Severity.LOW, "Idle", ("vm",), "big saving", "i", "r", current_cost=100, potential_savings=70),
        CostFinding(Severity.LOW, "Orphaned", ("pip",), "small saving", "i", "r", current_cost=3.65,
                    potential_savings=3.65),
    ), total_monthly_cost=200)
    tagging = TaggingAnalysis(findings=(
        TagFinding(Severity.HIGH, "Missing", tuple(f"r{i}" for i in range(6)), "wide", "i", "r"),
        TagFinding(Severity.HIGH, "Missing", tuple(f"r{i}" for i in range(5)), "narrow", "i", "r"),
        TagFinding(Severity.MEDIUM, "Missing", tuple(f"r{i}" for i in range(9)), "medium", "i", "r"),
    ))
    compliance = ComplianceAnalysis(findings=(
        ComplianceFinding(Severity.HIGH, "Backup", ("vm",), "no backup", "i", "r"),
        ComplianceFinding(Severity.MEDIUM, "DR", ("st",), "lrs", "i", "r"),
    ))

    actions = priority_actions(security, cost, tagging, compliance)

    assert [a.source for a in actions] == ["security", "security", "cost", "tagging", "compliance"]
    assert [a.title for a in actions] == ["Critical issue", "High issue", "big saving", "wide", "no backup"]
    assert actions[2].icon == "💰"
    assert actions[2].impact == "Save $70/month"


def test_empty_inputs_produce_no_actions():
    bundle = run_all([])
    assert bundle.priorities == []
    assert all(r.score == 100 for r in bundle.results())


def test_run_all_orders_results_and_collects_findings():
    bundle = run_all(to_resources([f.vm("vm-a"), f.storage("st", tier="Hot")]))
    assert [r.name for r in bundle.results()] == ["security", "cost", "tagging", "compliance"]
    assert len(bundle.all_findings()) == sum(len(r.findings) for r in bundle.results())
