# analyzers/cost.py
"""
Cost optimization analysis.

All money values are rough monthly estimates from static tables in config.py;
they are meant for order-of-magnitude prioritisation, not billing.
"""

from typing import List, Sequence, Set

from analyzers.base import Analyzer
from config import (
    DEFAULT_DISK_SIZE_GB,
    DEFAULT_VM_MONTHLY_COST,
    DEFAULT_VM_SIZE,
    DISK_COST_PER_GB,
    HOT_TIER_SAVINGS,
    IDLE_SAVINGS_RATIO,
    NAT_GATEWAY_MONTHLY_COST,
    OVERSIZED_SAVINGS_RATIO,
    OVERSIZED_VM_FAMILIES,
    PUBLIC_IP_MONTHLY_COST,
    STORAGE_ACCOUNT_MONTHLY_COST,
    VM_MONTHLY_COST,
)
from models import CostAnalysis, CostFinding, Severity
from resources import (
    DISK,
    NAT_GATEWAY,
    NETWORK_INTERFACE,
    PUBLIC_IP,
    STORAGE_ACCOUNT,
    VIRTUAL_MACHINE,
    Resource,
    filter_by_type,
)

# --- Pure helpers -----------------------------------------------------------

def estimate_vm_cost(vm_size: str) -> float:
    return VM_MONTHLY_COST.get(vm_size, DEFAULT_VM_MONTHLY_COST)


def vm_size(vm: Resource, default: str = DEFAULT_VM_SIZE) -> str:
    return vm.get_str("properties", "hardwareProfile", "vmSize", default=default) or default


def disk_size_gb(disk: Resource) -> float:
    return disk.get_number("properties", "diskSizeGB", default=float(DEFAULT_DISK_SIZE_GB))


def estimate_disk_cost(disk: Resource) -> float:
    return disk_size_gb(disk) * DISK_COST_PER_GB


def is_oversized_family(size: str) -> bool:
    return any(size.lower().startswith(family.lower()) for family in OVERSIZED_VM_FAMILIES)


def attached_disk_ids(resources: Sequence[Resource]) -> Set[str]:
    """Lower-cased IDs of managed disks referenced by any VM (OS and data disks)."""
    ids: Set[str] = set()
    for vm in filter_by_type(resources, VIRTUAL_MACHINE):
        os_disk = vm.get_str("properties", "storageProfile", "osDisk", "managedDisk", "id")
        if os_disk:
            ids.add(os_disk.lower())
        for data_disk in vm.get_list("properties", "storageProfile", "dataDisks"):
            if isinstance(data_disk, dict):
                ref = data_disk.get("managedDisk")
                if isinstance(ref, dict) and isinstance(ref.get("id"), str):
                    ids.add(ref["id"].lower())
    return ids


def referenced_public_ip_ids(resources: Sequence[Resource]) -> Set[str]:
    """Lower-cased IDs of public IPs referenced by a NIC IP configuration."""
    ids: Set[str] = set()
    for nic in filter_by_type(resources, NETWORK_INTERFACE):
        for ip_config in nic.get_list("properties", "ipConfigurations"):
            if not isinstance(ip_config, dict):
                continue
            props = ip_config.get("properties")
            if not isinstance(props, dict):
                continue
            pip = props.get("publicIPAddress")
            if isinstance(pip, dict) and isinstance(pip.get("id"), str):
                ids.add(pip["id"].lower())
    return ids


def public_ip_is_associated(pip: Resource) -> bool:
    # Azure back-references the owner (LB frontend, NAT gateway) on the IP itself.
    return bool(pip.get_mapping("properties", "ipConfiguration")) or \
        bool(pip.get_mapping("properties", "natGateway"))


# --- Analyzer ---------------------------------------------------------------

class CostAnalyzer(Analyzer[CostAnalysis]):
    name = "cost"

    def rules(self):
        return [
            self.check_orphaned_resources,
            self.check_idle_resources,
            self.check_oversized_resources,
            self.check_storage_tiers,
        ]

    def build_result(self, resources, findings) -> CostAnalysis:
        return CostAnalysis(findings=tuple(findings), total_monthly_cost=self.estimate_total_cost(resources))

    def check_orphaned_resources(self, resources: Sequence[Resource]) -> List[CostFinding]:
        findings: List[CostFinding] = []

        attached = attached_disk_ids(resources)
        for disk in filter_by_type(resources, DISK):
            if disk.id.lower() in attached:
                continue
            cost = estimate_disk_cost(disk)
            findings.append(CostFinding(
                severity=Severity.MEDIUM,
                category="Orphaned",
                resources=(disk.name,),
                issue="Disk is not attached to any VM",
                impact=f"Paying for {disk_size_gb(disk):.0f} GB of unused storage",
                remediation="Delete orphaned disk or attach to a VM if needed",
                current_cost=cost,
                potential_savings=cost,
            ))

        used = referenced_public_ip_ids(resources)
        for pip in filter_by_type(resources, PUBLIC_IP):
            if pip.id.lower() in used or public_ip_is_associated(pip):
                continue
            findings.append(CostFinding(
                severity=Severity.LOW,
                category="Orphaned",
                resources=(pip.name,),
                issue="Public IP is not associated with any resource",
                impact="Static public IPs are billed while unassigned",
                remediation="Delete unused public IP or associate with a resource",
                current_cost=PUBLIC_IP_MONTHLY_COST,
                potential_savings=PUBLIC_IP_MONTHLY_COST,
            ))
        return findings

    def check_idle_resources(self, resources: Sequence[Resource]) -> List[CostFinding]:
        """
        Every VM is an idle candidate: no utilization metrics are available in
        the inventory, so the finding asks for a metrics review.
        """
        findings: List[CostFinding] = []
        for vm in filter_by_type(resources, VIRTUAL_MACHINE):
            if vm.properties is None:
                continue
            cost = estimate_vm_cost(vm_size(vm))
            findings.append(CostFinding(
                severity=Severity.LOW,
                category="Idle",
                resources=(vm.name,),
                issue="VM may be idle or underutilized (requires metrics analysis)",
                impact="Running compute is billed whether or not it does work",
                remediation="Review VM metrics. If CPU <5% avg, consider deallocating when not in use or downsizing",
                current_cost=cost,
                potential_savings=cost * IDLE_SAVINGS_RATIO,
            ))
        return findings

    def check_oversized_resources(self, resources: Sequence[Resource]) -> List[CostFinding]:
        findings: List[CostFinding] = []
        for vm in filter_by_type(resources, VIRTUAL_MACHINE):
            size = vm.get_str("properties", "hardwareProfile", "vmSize")
            if not size or not is_oversized_family(size):
                continue
            cost = estimate_vm_cost(size)
            findings.append(CostFinding(
                severity=Severity.MEDIUM,
                category="Oversized",
                resources=(vm.name,),
                issue=f"VM using {size} - may be oversized for workload",
                impact="General purpose and memory optimized sizes cost more than burstable sizes",
                remediation="Analyze CPU/Memory metrics. Consider B-series or smaller size if utilization <30%",
                current_cost=cost,
                potential_savings=cost * OVERSIZED_SAVINGS_RATIO,
            ))
        return findings

    def check_storage_tiers(self, resources: Sequence[Resource]) -> List[CostFinding]:
        findings: List[CostFinding] = []
        for sa in filter_by_type(resources, STORAGE_ACCOUNT):
            if sa.get_str("properties", "accessTier").lower() != "hot":
                continue
            findings.append(CostFinding(
                severity=Severity.LOW,
                category="StorageTier",
                resources=(sa.name,),
                issue="Storage account using Hot tier - review access patterns",
                impact="Hot tier storage costs more for rarely accessed data",
                remediation="If data is accessed <1x/month, move to Cool tier. For archival, use Archive tier",
                current_cost=STORAGE_ACCOUNT_MONTHLY_COST,
                potential_savings=HOT_TIER_SAVINGS,
            ))
        return findings

    def estimate_total_cost(self, resources: Sequence[Resource]) -> float:
        total = 0.0
        for res in resources:
            if res.type == VIRTUAL_MACHINE:
                total += estimate_vm_cost(vm_size(res))
            elif res.type == STORAGE_ACCOUNT:
                total += STORAGE_ACCOUNT_MONTHLY_COST
            elif res.type == NAT_GATEWAY:
                total += NAT_GATEWAY_MONTHLY_COST
            elif res.type == PUBLIC_IP:
                total += PUBLIC_IP_MONTHLY_COST
            elif res.type == DISK:
                total += estimate_disk_cost(res)
        return total


def analyze_cost(resources: Sequence[Resource]) -> CostAnalysis:
    return CostAnalyzer().analyze(resources)
