# analyzers/compliance.py
"""
Disaster-recovery and monitoring compliance.

Coverage is evidence based: backup protection is read from Recovery Services
protected items and monitoring from diagnostic-settings records found in the
inventory. When the inventory carries no such records at all the coverage is
reported as unavailable (None) instead of a misleading zero.
"""

from typing import List, Optional, Sequence, Set, Tuple

from analyzers.base import Analyzer
from config import LOCALLY_REDUNDANT_MARKER, MONITORABLE_TYPES, MONITORING_FINDING_SAMPLE
from models import ComplianceAnalysis, ComplianceFinding, Severity
from resources import (
    DIAGNOSTIC_SETTING,
    PROTECTED_ITEM,
    RECOVERY_VAULT,
    STORAGE_ACCOUNT,
    VIRTUAL_MACHINE,
    Resource,
    filter_by_type,
)


def is_monitorable(resource_type: str) -> bool:
    return resource_type.lower() in MONITORABLE_TYPES


def protected_vm_ids(resources: Sequence[Resource]) -> Optional[Set[str]]:
    """
    Lower-cased VM ids protected by Azure Backup, or None when the inventory
    holds no Recovery Services data to judge from.
    """
    vaults = filter_by_type(resources, RECOVERY_VAULT)
    items = filter_by_type(resources, PROTECTED_ITEM)
    if not vaults and not items:
        return None
    ids: Set[str] = set()
    for item in items:
        for key in ("sourceResourceId", "virtualMachineId"):
            ref = item.get_str("properties", key)
            if ref:
                ids.add(ref.lower())
    return ids


def diagnosed_resource_ids(resources: Sequence[Resource]) -> Optional[List[str]]:
    """
    Lower-cased ids of resources with diagnostic settings, or None when the
    inventory holds no diagnostic-settings records.

    A setting's id is "<resource id>/providers/microsoft.insights/diagnosticSettings/<name>".
    """
    settings = filter_by_type(resources, DIAGNOSTIC_SETTING)
    if not settings:
        return None
    owners = []
    marker = "/providers/microsoft.insights/diagnosticsettings/"
    for setting in settings:
        sid = setting.id.lower()
        if marker in sid:
            owners.append(sid.split(marker, 1)[0])
    return owners


def coverage(total: int, covered: int) -> float:
    return covered / total * 100 if total else 100.0


class ComplianceAnalyzer(Analyzer[ComplianceAnalysis]):
    name = "compliance"

    def rules(self):
        return [self.check_backup, self.check_monitoring, self.check_geo_redundancy]

    def build_result(self, resources, findings) -> ComplianceAnalysis:
        return ComplianceAnalysis(
            findings=tuple(findings),
            backup_coverage=self.backup_status(resources)[0],
            monitoring_coverage=self.monitoring_status(resources)[0],
        )

    def backup_status(self, resources: Sequence[Resource]) -> Tuple[Optional[float], List[str]]:
        """(coverage percentage or None, names of unprotected VMs)."""
        vms = filter_by_type(resources, VIRTUAL_MACHINE)
        protected = protected_vm_ids(resources)
        if not vms or protected is None:
            return None, []
        unprotected = [vm.name for vm in vms if vm.id.lower() not in protected]
        return coverage(len(vms), len(vms) - len(unprotected)), unprotected

    def check_backup(self, resources: Sequence[Resource]) -> List[ComplianceFinding]:
        _, unprotected = self.backup_status(resources)
        if not unprotected:
            return []
        return [ComplianceFinding(
            severity=Severity.HIGH,
            category="Backup",
            resources=tuple(unprotected),
            issue=f"{len(unprotected)} VMs without Azure Backup configured",
            impact="Risk of data loss if VM fails or is corrupted",
            remediation="Configure Azure Backup with appropriate retention policy (7-30 days recommended)",
        )]

    def monitoring_status(self, resources: Sequence[Resource]) -> Tuple[Optional[float], List[str]]:
        monitorable = [r for r in resources if is_monitorable(r.type)]
        owners = diagnosed_resource_ids(resources)
        if not monitorable or owners is None:
            return None, []
        missing = [
            f"{r.name} ({r.type})" for r in monitorable
            if not any(owner == r.id.lower() for owner in owners)
        ]
        return coverage(len(monitorable), len(monitorable) - len(missing)), missing

    def check_monitoring(self, resources: Sequence[Resource]) -> List[ComplianceFinding]:
        _, missing = self.monitoring_status(resources)
        if not missing:
            return []
        issue = f"{len(missing)} resources without diagnostic settings"
        shown = missing
        if len(missing) > MONITORING_FINDING_SAMPLE:
            shown = missing[:MONITORING_FINDING_SAMPLE]
            issue += f" (showing first {MONITORING_FINDING_SAMPLE})"
        return [ComplianceFinding(
            severity=Severity.MEDIUM,
            category="Monitoring",
            resources=tuple(shown),
            issue=issue,
            impact="Limited visibility into resource health and performance",
            remediation="Enable diagnostic settings to send logs to Log Analytics workspace",
        )]

    def check_geo_redundancy(self, resources: Sequence[Resource]) -> List[ComplianceFinding]:
        lrs = [
            sa.name for sa in filter_by_type(resources, STORAGE_ACCOUNT)
            if LOCALLY_REDUNDANT_MARKER in sa.sku.upper()
        ]
        if not lrs:
            return []
        return [ComplianceFinding(
            severity=Severity.MEDIUM,
            category="DR",
            resources=tuple(lrs),
            issue=f"{len(lrs)} storage accounts using LRS (locally redundant)",
            impact="Data not protected against regional outages",
            remediation="Consider GRS (Geo-Redundant Storage) or GZRS for critical data",
        )]


def analyze_compliance(resources: Sequence[Resource]) -> ComplianceAnalysis:
    return ComplianceAnalyzer().analyze(resources)
