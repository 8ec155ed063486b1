# models.py
"""
Data models used by the analyzers and renderers.

- Findings are frozen dataclasses: produced once during an analysis pass and
  never mutated afterwards.
- Each analysis result carries its findings plus the metrics it reports, and
  derives its 0-100 score and health label from them.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Tuple

from config import (
    BACKUP_COVERAGE_WEIGHT,
    COMPLIANCE_PENALTIES,
    MONITORING_COVERAGE_WEIGHT,
    SECURITY_PENALTIES,
    TAGGING_PENALTIES,
)


class Severity(str, Enum):
    """Finding severity. Critical > High > Medium > Low."""

    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @property
    def icon(self) -> str:
        return _SEVERITY_ICON[self]

    @classmethod
    def parse(cls, value: str) -> Optional["Severity"]:
        """Case-insensitive lookup; None for unknown values."""
        for sev in cls:
            if sev.value.lower() == str(value).strip().lower():
                return sev
        return None


_SEVERITY_RANK = {Severity.CRITICAL: 4, Severity.HIGH: 3, Severity.MEDIUM: 2, Severity.LOW: 1}
_SEVERITY_ICON = {Severity.CRITICAL: "🔴", Severity.HIGH: "🟠", Severity.MEDIUM: "🟡", Severity.LOW: "🔵"}


# --- Findings ----------------------------------------------------------------

@dataclass(frozen=True)
class Finding:
    """
    Common shape of every finding.

    Fields:
    - severity: Severity enum member
    - category: analyzer-scoped classification (e.g. "NSG", "Orphaned", "Missing")
    - resources: names of the affected resources
    - issue: short description of the problem
    - impact: why it matters
    - remediation: how to fix it
    """
    source: ClassVar[str] = "generic"

    severity: Severity
    category: str
    resources: Tuple[str, ...]
    issue: str
    impact: str
    remediation: str

    @property
    def resource(self) -> str:
        """First affected resource, or an empty string."""
        return self.resources[0] if self.resources else ""

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["resources"] = list(self.resources)
        data["analyzer"] = self.source
        return data


@dataclass(frozen=True)
class SecurityFinding(Finding):
    source: ClassVar[str] = "security"


@dataclass(frozen=True)
class CostFinding(Finding):
    """Cost finding with monthly estimates (currency-less floats)."""
    source: ClassVar[str] = "cost"

    current_cost: float = 0.0
    potential_savings: float = 0.0


@dataclass(frozen=True)
class ComplianceFinding(Finding):
    source: ClassVar[str] = "compliance"


@dataclass(frozen=True)
class TagFinding(Finding):
    source: ClassVar[str] = "tagging"


@dataclass(frozen=True)
class PriorityAction:
    """One entry of the merged, cross-analyzer action list."""
    icon: str
    title: str
    impact: str
    severity: Severity
    source: str


# --- Analysis results ----------------------------------------------------------

def penalized_score(start: float, findings, penalties: Dict[str, int]) -> int:
    """Subtract a per-severity penalty for each finding and clamp to [0, 100]."""
    score = int(start)
    for f in findings:
        score -= penalties.get(f.severity.value, 0)
    return max(0, min(100, score))


@dataclass(frozen=True)
class ScoredAnalysis:
    """Shape shared by every analyzer result: findings, score, health label."""
    name: ClassVar[str] = "analysis"
    # (minimum score, label) from best to worst
    health_bands: ClassVar[Tuple[Tuple[int, str], ...]] = (
        (90, "✅ EXCELLENT"),
        (75, "✅ GOOD"),
        (50, "⚠️ NEEDS ATTENTION"),
        (0, "🔴 CRITICAL"),
    )

    findings: Tuple[Finding, ...] = ()

    @property
    def score(self) -> int:
        raise NotImplementedError

    @property
    def health(self) -> str:
        score = self.score
        for minimum, label in self.health_bands:
            if score >= minimum:
                return label
        return self.health_bands[-1][1]

    def count(self, severity: Severity) -> int:
        return sum(1 for f in self.findings if f.severity == severity)

    def by_category(self) -> Dict[str, List[Finding]]:
        """Group findings by category, preserving first-seen order."""
        groups: Dict[str, List[Finding]] = {}
        for f in self.findings:
            groups.setdefault(f.category, []).append(f)
        return groups


@dataclass(frozen=True)
class SecurityAnalysis(ScoredAnalysis):
    name: ClassVar[str] = "security"

    @property
    def critical_count(self) -> int:
        return self.count(Severity.CRITICAL)

    @property
    def high_count(self) -> int:
        return self.count(Severity.HIGH)

    @property
    def medium_count(self) -> int:
        return self.count(Severity.MEDIUM)

    @property
    def low_count(self) -> int:
        return self.count(Severity.LOW)

    @property
    def score(self) -> int:
        return penalized_score(100, self.findings, SECURITY_PENALTIES)

    @property
    def posture(self) -> str:
        return self.health


@dataclass(frozen=True)
class CostAnalysis(ScoredAnalysis):
    name: ClassVar[str] = "cost"
    health_bands: ClassVar[Tuple[Tuple[int, str], ...]] = (
        (90, "✅ EXCELLENT"),
        (75, "✅ GOOD"),
        (50, "⚠️ NEEDS OPTIMIZATION"),
        (0, "🔴 HIGH WASTE"),
    )

    total_monthly_cost: float = 0.0

    @property
    def potential_monthly_savings(self) -> float:
        return sum(f.potential_savings for f in self.findings if isinstance(f, CostFinding))

    @property
    def savings_ratio(self) -> float:
        """Potential savings as a percentage of total estimated cost."""
        if self.total_monthly_cost <= 0:
            return 0.0
        return self.potential_monthly_savings / self.total_monthly_cost * 100

    @property
    def score(self) -> int:
        if self.total_monthly_cost <= 0:
            return 100
        pct = self.savings_ratio
        if pct < 10:
            return 100
        if pct < 25:
            return 80
        if pct < 40:
            return 60
        return 40


@dataclass(frozen=True)
class ComplianceAnalysis(ScoredAnalysis):
    """
    Backup and monitoring coverage are percentages, or None when the inventory
    holds no data to assess them (nothing to measure, or no vault/diagnostic
    records present). An unassessed coverage is never penalized.
    """
    name: ClassVar[str] = "compliance"

    backup_coverage: Optional[float] = None
    monitoring_coverage: Optional[float] = None

    @property
    def score(self) -> int:
        score = 100
        if self.backup_coverage is not None:
            score -= int((100 - self.backup_coverage) * BACKUP_COVERAGE_WEIGHT)
        if self.monitoring_coverage is not None:
            score -= int((100 - self.monitoring_coverage) * MONITORING_COVERAGE_WEIGHT)
        return penalized_score(score, self.findings, COMPLIANCE_PENALTIES)


@dataclass(frozen=True)
class TaggingAnalysis(ScoredAnalysis):
    name: ClassVar[str] = "tagging"
    health_bands: ClassVar[Tuple[Tuple[int, str], ...]] = (
        (90, "✅ EXCELLENT"),
        (75, "✅ GOOD"),
        (50, "⚠️ NEEDS ATTENTION"),
        (0, "🔴 POOR"),
    )

    total_resources: int = 0
    tagged_resources: int = 0
    required_tags: Tuple[str, ...] = ()

    @property
    def untagged_resources(self) -> int:
        return self.total_resources - self.tagged_resources

    @property
    def compliance_rate(self) -> float:
        if self.total_resources == 0:
            return 100.0
        return self.tagged_resources / self.total_resources * 100

    @property
    def score(self) -> int:
        return penalized_score(self.compliance_rate, self.findings, TAGGING_PENALTIES)


@dataclass
class AnalysisBundle:
    """The four analyzer results of one run plus the merged priority list."""
    security: SecurityAnalysis
    cost: CostAnalysis
    compliance: ComplianceAnalysis
    tagging: TaggingAnalysis
    priorities: List[PriorityAction] = field(default_factory=list)

    def results(self) -> List[ScoredAnalysis]:
        return [self.security, self.cost, self.tagging, self.compliance]

    def all_findings(self) -> List[Finding]:
        findings: List[Finding] = []
        for result in self.results():
            findings.extend(result.findings)
        return findings
