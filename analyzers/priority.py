# analyzers/priority.py
"""Merge the most pressing findings of all analyzers into one action list."""

from typing import List

from config import PRIORITY_SAVINGS_THRESHOLD, PRIORITY_TAG_MIN_RESOURCES
from models import (
    ComplianceAnalysis,
    CostAnalysis,
    PriorityAction,
    SecurityAnalysis,
    Severity,
    TaggingAnalysis,
)


def priority_actions(
    security: SecurityAnalysis,
    cost: CostAnalysis,
    tagging: TaggingAnalysis,
    compliance: ComplianceAnalysis,
) -> List[PriorityAction]:
    """
    Pull, in this order:
    - Critical/High security findings
    - cost findings saving more than PRIORITY_SAVINGS_THRESHOLD a month
    - High tagging findings affecting more than PRIORITY_TAG_MIN_RESOURCES resources
    - High compliance findings
    """
    actions: List[PriorityAction] = []

    for f in security.findings:
        if f.severity in (Severity.CRITICAL, Severity.HIGH):
            actions.append(PriorityAction(
                icon="🔴",
                title=f.issue,
                impact=f"Security: {f.impact}",
                severity=f.severity,
                source="security",
            ))

    for f in cost.findings:
        if getattr(f, "potential_savings", 0.0) > PRIORITY_SAVINGS_THRESHOLD:
            actions.append(PriorityAction(
                icon="💰",
                title=f.issue,
                impact=f"Save ${f.potential_savings:.0f}/month",
                severity=Severity.HIGH,
                source="cost",
            ))

    for f in tagging.findings:
        if f.severity == Severity.HIGH and len(f.resources) > PRIORITY_TAG_MIN_RESOURCES:
            actions.append(PriorityAction(
                icon="🏷️",
                title=f.issue,
                impact=f"Governance: {f.impact}",
                severity=f.severity,
                source="tagging",
            ))

    for f in compliance.findings:
        if f.severity == Severity.HIGH:
            actions.append(PriorityAction(
                icon="⚠️",
                title=f.issue,
                impact=f.impact,
                severity=f.severity,
                source="compliance",
            ))

    return actions
