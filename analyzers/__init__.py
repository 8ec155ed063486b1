"""Resource analyzers: security, cost, compliance, tagging, plus the priority merge."""

from typing import Optional, Sequence

from analyzers.compliance import ComplianceAnalyzer, analyze_compliance
from analyzers.cost import CostAnalyzer, analyze_cost
from analyzers.priority import priority_actions
from analyzers.security import SecurityAnalyzer, analyze_security
from analyzers.tagging import TaggingAnalyzer, analyze_tagging
from models import AnalysisBundle
from resources import Resource


def run_all(resources: Sequence[Resource], required_tags: Optional[Sequence[str]] = None) -> AnalysisBundle:
    """Run the four analyzers over one snapshot and merge their priority actions."""
    security = analyze_security(resources)
    cost = analyze_cost(resources)
    compliance = analyze_compliance(resources)
    tagging = analyze_tagging(resources, required_tags)
    return AnalysisBundle(
        security=security,
        cost=cost,
        compliance=compliance,
        tagging=tagging,
        priorities=priority_actions(security, cost, tagging, compliance),
    )


__all__ = [
    "ComplianceAnalyzer",
    "CostAnalyzer",
    "SecurityAnalyzer",
    "TaggingAnalyzer",
    "analyze_compliance",
    "analyze_cost",
    "analyze_security",
    "analyze_tagging",
    "priority_actions",
    "run_all",
]
