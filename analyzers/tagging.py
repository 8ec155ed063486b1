# analyzers/tagging.py
"""
Tag governance analysis: required-tag coverage, key spelling drift and
environment value drift. System resource types are excluded throughout.
"""

import re
from typing import Dict, List, Optional, Sequence

from analyzers.base import Analyzer
from config import (
    CANONICAL_ENVIRONMENTS,
    DEFAULT_REQUIRED_TAGS,
    ENVIRONMENT_TAG_KEYS,
    HIGH_SEVERITY_TAGS,
    MAX_ENVIRONMENT_VALUES,
    SYSTEM_RESOURCE_TYPES,
)
from models import Severity, TagFinding, TaggingAnalysis
from resources import Resource

_SEPARATORS = re.compile(r"[\s_\-.]+")


def is_system_resource(resource_type: str) -> bool:
    return resource_type.lower() in SYSTEM_RESOURCE_TYPES


def normalize_tag_key(key: str) -> str:
    """'Cost-Center', 'cost_center' and 'CostCenter' all normalize to 'costcenter'."""
    return _SEPARATORS.sub("", key.strip().lower())


def has_tag(tags: Dict[str, str], wanted: str) -> bool:
    """Case-insensitive key presence check."""
    wanted = wanted.lower()
    return any(k.lower() == wanted for k in tags)


class TaggingAnalyzer(Analyzer[TaggingAnalysis]):
    name = "tagging"

    def __init__(self, required_tags: Optional[Sequence[str]] = None):
        self.required_tags = tuple(required_tags or DEFAULT_REQUIRED_TAGS)

    def rules(self):
        return [self.check_missing_tags, self.check_key_consistency, self.check_environment_values]

    def build_result(self, resources, findings) -> TaggingAnalysis:
        scoped = self.scoped(resources)
        return TaggingAnalysis(
            findings=tuple(findings),
            total_resources=len(scoped),
            tagged_resources=sum(1 for r in scoped if r.tags),
            required_tags=self.required_tags,
        )

    @staticmethod
    def scoped(resources: Sequence[Resource]) -> List[Resource]:
        return [r for r in resources if not is_system_resource(r.type)]

    def check_missing_tags(self, resources: Sequence[Resource]) -> List[TagFinding]:
        missing: Dict[str, List[str]] = {tag: [] for tag in self.required_tags}
        for res in self.scoped(resources):
            tags = res.tags
            for tag in self.required_tags:
                if not has_tag(tags, tag):
                    missing[tag].append(res.name)

        high = {t.lower() for t in HIGH_SEVERITY_TAGS}
        findings: List[TagFinding] = []
        for tag in self.required_tags:
            names = missing[tag]
            if not names:
                continue
            findings.append(TagFinding(
                severity=Severity.HIGH if tag.lower() in high else Severity.MEDIUM,
                category="Missing",
                resources=tuple(names),
                issue=f"{len(names)} resources missing '{tag}' tag",
                impact="Cannot track ownership, cost allocation, or compliance",
                remediation=f"Add '{tag}' tag to all resources according to tagging policy",
            ))
        return findings

    def check_key_consistency(self, resources: Sequence[Resource]) -> List[TagFinding]:
        """One finding per logical key that appears under more than one spelling."""
        variants: Dict[str, Dict[str, List[str]]] = {}
        for res in self.scoped(resources):
            for key in res.tags:
                variants.setdefault(normalize_tag_key(key), {}).setdefault(key, []).append(res.name)

        required = {normalize_tag_key(t): t for t in self.required_tags}
        findings: List[TagFinding] = []
        for normalized, spellings in variants.items():
            if len(spellings) < 2:
                continue
            names: List[str] = []
            for owners in spellings.values():
                for name in owners:
                    if name not in names:
                        names.append(name)
            recommended = required.get(normalized, next(iter(spellings)).lower())
            findings.append(TagFinding(
                severity=Severity.LOW,
                category="Inconsistent",
                resources=tuple(names),
                issue=f"Tag key '{recommended}' has {len(spellings)} variations: {', '.join(spellings)}",
                impact="Makes filtering and cost reporting difficult",
                remediation=f"Standardize to single format (recommended: '{recommended}')",
            ))
        return findings

    def check_environment_values(self, resources: Sequence[Resource]) -> List[TagFinding]:
        env_keys = {k.lower() for k in ENVIRONMENT_TAG_KEYS}
        values: Dict[str, int] = {}
        names: List[str] = []
        for res in self.scoped(resources):
            for key, value in res.tags.items():
                if key.lower() not in env_keys:
                    continue
                normalized = value.strip().lower()
                values[normalized] = values.get(normalized, 0) + 1
                if res.name not in names:
                    names.append(res.name)

        if len(values) <= MAX_ENVIRONMENT_VALUES:
            return []
        return [TagFinding(
            severity=Severity.MEDIUM,
            category="Inconsistent",
            resources=tuple(names),
            issue=f"Environment tag has {len(values)} different values: {', '.join(values)}",
            impact="Difficult to filter resources by environment",
            remediation=f"Standardize environment values to: {', '.join(CANONICAL_ENVIRONMENTS)}",
        )]


def analyze_tagging(resources: Sequence[Resource], required_tags: Optional[Sequence[str]] = None) -> TaggingAnalysis:
    return TaggingAnalyzer(required_tags).analyze(resources)
