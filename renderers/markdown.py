# renderers/markdown.py
"""
Markdown renderer: one subscription document from the analysis bundle.

Section order is fixed: header and summary, (optional) AI architecture
overview, priority actions, then Security, Cost, Tagging and Compliance.
AI insight blocks are appended after the deterministic findings of their
section and are skipped entirely when the narrative service is off or fails.
"""

import logging
import os
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from config import DISPLAY_CAP, Settings
from exceptions import ArtifactWriteError, NarrativeError
from models import (
    AnalysisBundle,
    ComplianceAnalysis,
    CostAnalysis,
    CostFinding,
    PriorityAction,
    SecurityAnalysis,
    Severity,
    TaggingAnalysis,
)
from narrative import ArchitectureDescription, CostInsight, NarrativeService, SecurityInsight
from resources import Resource, count_by_type
from topology import Topology

logger = logging.getLogger(__name__)

EFFORT_ICONS = {"low": "🟢", "medium": "🟡", "high": "🔴"}


def cell(value) -> str:
    """Make a value safe inside a table cell."""
    return str(value).replace("|", "\\|").replace("\n", " ")


def severity_icon(severity: str) -> str:
    sev = Severity.parse(severity)
    return sev.icon if sev else "⚪"


# --- Header / summary --------------------------------------------------------

def header_section(bundle: AnalysisBundle, resources: Sequence[Resource], subscription: Optional[str],
                   generated_at: datetime, topology: Optional[Topology] = None) -> List[str]:
    title = subscription or "Azure Subscription"
    lines = [
        f"# {title} Documentation",
        "",
        f"*Generated: {generated_at.strftime('%Y-%m-%d %H:%M:%S %Z').strip()}*",
        "",
        "## Summary",
        "",
        "| Area | Score | Health |",
        "|------|-------|--------|",
    ]
    for result in bundle.results():
        lines.append(f"| {result.name.capitalize()} | {result.score}/100 | {result.health} |")
    lines.append("")

    lines += [f"**Total Resources:** {len(resources)}", ""]
    counts = count_by_type(resources)
    if counts:
        lines += ["| Resource Type | Count |", "|---------------|-------|"]
        lines += [f"| {cell(t)} | {n} |" for t, n in counts.items()]
        lines.append("")

    if topology is not None:
        lines += [
            "### Network Topology",
            "",
            f"- Nodes: {len(topology.nodes)}",
            f"- Connections: {len(topology.edges)}",
            f"- VNet peerings: {len(topology.edges_of_type('peering'))}",
            "",
        ]
    return lines


def architecture_section(description: ArchitectureDescription) -> List[str]:
    lines = ["## 🤖 Architecture Overview", "", description.overview, ""]
    if description.key_findings:
        lines += ["**Key Findings:**"] + [f"- {f}" for f in description.key_findings] + [""]
    if description.resource_group_insights:
        lines += ["### Resource Groups", ""]
        for rg, text in description.resource_group_insights.items():
            lines += [f"**{rg}:** {text}", ""]
    return lines


def priority_section(actions: Sequence[PriorityAction]) -> List[str]:
    lines = ["## 🎯 Priority Actions", ""]
    if not actions:
        return lines + ["✅ No priority actions. Nothing critical needs attention.", ""]
    lines += ["| | Action | Impact | Severity |", "|---|--------|--------|----------|"]
    for a in actions:
        lines.append(f"| {a.icon} | {cell(a.title)} | {cell(a.impact)} | {a.severity.value} |")
    return lines + [""]


# --- Security ----------------------------------------------------------------

def security_section(security: SecurityAnalysis) -> List[str]:
    lines = [
        "## 🔒 Security Analysis",
        "",
        f"**Security Score:** {security.score}/100 - {security.posture}",
        "",
    ]
    if not security.findings:
        return lines + ["✅ No security issues detected. Excellent security posture!", ""]

    for category, findings in security.by_category().items():
        lines += [f"### {category} Issues ({len(findings)})", ""]
        for f in findings[:DISPLAY_CAP]:
            lines += [
                f"#### {f.severity.icon} {f.severity.value} - {f.issue}",
                "",
                f"**Resource:** {', '.join(f.resources)}",
                "",
                f"**Impact:** {f.impact}",
                "",
                f"**Remediation:** {f.remediation}",
                "",
                "---",
                "",
            ]
        if len(findings) > DISPLAY_CAP:
            lines += [f"*...and {len(findings) - DISPLAY_CAP} more {category} issues*", ""]
    return lines


def security_insights_section(insights: Sequence[SecurityInsight]) -> List[str]:
    if not insights:
        return []
    lines = ["### 🤖 AI-Powered Security Insights", "",
             "*Generated by AI analysis of the security findings above*", ""]
    for i, insight in enumerate(insights):
        lines += [
            f"#### {severity_icon(insight.severity)} Priority {insight.priority}: {insight.title}",
            "",
            f"**Category:** {insight.category} | **Severity:** {insight.severity}",
            "",
            f"**Description:** {insight.description}",
            "",
            f"**Risk Level:** {insight.risk_level}",
            "",
            f"**Impact:** {insight.impact}",
            "",
        ]
        if insight.recommendations:
            lines += ["**Recommendations:**"] + [f"- {r}" for r in insight.recommendations] + [""]
        if i < len(insights) - 1:
            lines += ["---", ""]
    return lines


# --- Cost --------------------------------------------------------------------

def cost_section(cost: CostAnalysis) -> List[str]:
    lines = [
        "## 💰 Cost Optimization",
        "",
        f"**Cost Health:** {cost.health} (Score: {cost.score}/100)",
        "",
        f"**Estimated Monthly Cost:** ${cost.total_monthly_cost:.2f}",
        "",
        f"**Potential Monthly Savings:** ${cost.potential_monthly_savings:.2f} ({cost.savings_ratio:.0f}%)",
        "",
    ]
    if not cost.findings:
        return lines + ["✅ No major cost optimization opportunities detected.", ""]

    for category, findings in cost.by_category().items():
        savings = sum(f.potential_savings for f in findings if isinstance(f, CostFinding))
        lines += [
            f"### {category} Resources (Save ${savings:.0f}/month)",
            "",
            "| Resource | Issue | Current Cost | Potential Savings | Remediation |",
            "|----------|-------|--------------|-------------------|-------------|",
        ]
        for f in findings[:DISPLAY_CAP]:
            lines.append(f"| {cell(f.resource)} | {cell(f.issue)} | ${f.current_cost:.2f} | "
                         f"${f.potential_savings:.2f} | {cell(f.remediation)} |")
        if len(findings) > DISPLAY_CAP:
            hidden = sum(f.potential_savings for f in findings[DISPLAY_CAP:])
            lines.append(f"| ... | *...and {len(findings) - DISPLAY_CAP} more {category} items* | - | "
                         f"${hidden:.0f} | - |")
        lines.append("")
    return lines


def cost_insights_section(insights: Sequence[CostInsight]) -> List[str]:
    if not insights:
        return []
    total = sum(i.estimated_savings for i in insights)
    lines = [
        "### 🤖 AI-Powered Cost Optimization Insights",
        "",
        "*Generated by AI analysis of the cost findings above*",
        "",
        f"**💡 Total Estimated Additional Savings:** ${total:.2f}/month",
        "",
    ]
    for i, insight in enumerate(insights):
        effort_icon = EFFORT_ICONS.get(insight.effort.lower(), "🟢")
        lines += [
            f"#### 💰 Priority {insight.priority}: {insight.title}",
            "",
            f"**Category:** {insight.category} | **Effort:** {effort_icon} {insight.effort} | "
            f"**Savings:** ${insight.estimated_savings:.2f}/month",
            "",
            f"**Description:** {insight.description}",
            "",
        ]
        if insight.recommendations:
            lines += ["**Recommendations:**"] + [f"- {r}" for r in insight.recommendations] + [""]
        if i < len(insights) - 1:
            lines += ["---", ""]
    return lines


# --- Tagging -----------------------------------------------------------------

def tagging_section(tagging: TaggingAnalysis) -> List[str]:
    lines = [
        "## 🏷️ Tagging Compliance",
        "",
        f"**Tagging Health:** {tagging.health} (Score: {tagging.score}/100)",
        "",
        f"**Compliance Rate:** {tagging.compliance_rate:.0f}% "
        f"({tagging.tagged_resources}/{tagging.total_resources} resources tagged)",
        "",
        "**Required Tags:** " + ", ".join(f"`{t}`" for t in tagging.required_tags),
        "",
    ]
    if not tagging.findings:
        return lines + ["✅ Excellent tagging compliance!", ""]

    for f in tagging.findings:
        lines += [
            f"### {f.severity.icon} {f.severity.value}: {f.issue}",
            "",
            f"**Impact:** {f.impact}",
            "",
            f"**Remediation:** {f.remediation}",
            "",
        ]
        if f.resources:
            if len(f.resources) > DISPLAY_CAP:
                lines.append(f"**Affected Resources:** {len(f.resources)} resources (first {DISPLAY_CAP} shown)")
            else:
                lines.append("**Affected Resources:**")
            lines += [f"- {name}" for name in f.resources[:DISPLAY_CAP]]
            if len(f.resources) > DISPLAY_CAP:
                lines.append(f"- *...and {len(f.resources) - DISPLAY_CAP} more*")
            lines.append("")
        lines += ["---", ""]
    return lines


# --- Compliance --------------------------------------------------------------

def _coverage(value: Optional[float]) -> str:
    return "not assessed" if value is None else f"{value:.0f}%"


def compliance_section(compliance: ComplianceAnalysis) -> List[str]:
    lines = [
        "## ✅ Compliance & Disaster Recovery",
        "",
        f"**Compliance Health:** {compliance.health} (Score: {compliance.score}/100)",
        "",
        f"**Backup Coverage:** {_coverage(compliance.backup_coverage)}",
        "",
        f"**Monitoring Coverage:** {_coverage(compliance.monitoring_coverage)}",
        "",
    ]
    if not compliance.findings:
        return lines + ["✅ No compliance issues detected.", ""]

    for f in compliance.findings:
        lines += [
            f"### {f.severity.icon} {f.severity.value}: {f.issue}",
            "",
            f"**Impact:** {f.impact}",
            "",
            f"**Remediation:** {f.remediation}",
            "",
        ]
        if f.resources:
            lines += ["**Affected Resources:**"] + [f"- {name}" for name in f.resources[:DISPLAY_CAP]]
            if len(f.resources) > DISPLAY_CAP:
                lines.append(f"- *...and {len(f.resources) - DISPLAY_CAP} more*")
            lines.append("")
        lines += ["---", ""]
    return lines


# --- Renderer ----------------------------------------------------------------

class MarkdownRenderer:
    """Assembles and writes <out_dir>/<md_name>."""

    def __init__(self, settings: Settings, narrative: Optional[NarrativeService] = None):
        self.settings = settings
        self.narrative = narrative

    @property
    def output_path(self) -> str:
        return os.path.join(self.settings.out_dir, self.settings.md_name)

    def _ai(self, operation, *args):
        """Run one narrative call; None when disabled or failed."""
        if self.narrative is None or not self.narrative.enabled:
            return None
        try:
            return operation(*args)
        except NarrativeError as e:
            logger.warning("AI %s skipped: %s", e.operation, e)
            return None

    def render(self, bundle: AnalysisBundle, resources: Sequence[Resource],
               topology: Optional[Topology] = None, generated_at: Optional[datetime] = None) -> str:
        generated_at = generated_at or datetime.now(timezone.utc)
        lines = header_section(bundle, resources, self.settings.subscription, generated_at, topology)

        if self.narrative is not None:
            description = self._ai(self.narrative.describe_architecture, resources)
            if description:
                lines += architecture_section(description)

        lines += priority_section(bundle.priorities)

        lines += security_section(bundle.security)
        if self.narrative is not None:
            lines += security_insights_section(
                self._ai(self.narrative.security_insights, bundle.security.findings) or [])

        lines += cost_section(bundle.cost)
        if self.narrative is not None:
            lines += cost_insights_section(self._ai(self.narrative.cost_insights, bundle.cost.findings) or [])

        lines += tagging_section(bundle.tagging)
        lines += compliance_section(bundle.compliance)
        return "\n".join(lines).rstrip() + "\n"

    def write(self, content: str) -> str:
        path = self.output_path
        try:
            os.makedirs(self.settings.out_dir or ".", exist_ok=True)
            with open(path, "w", encoding="utf-8") as fh:
                fh.write(content)
        except OSError as e:
            raise ArtifactWriteError(path, e) from e
        logger.info("Markdown written: %s", path)
        return path
