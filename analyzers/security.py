# analyzers/security.py
"""
Security analysis.

- Pure rule helpers for NSG rule inspection (source prefix, port matching).
- SecurityAnalyzer applies four independent checks:
  * NSG inbound allow-from-anywhere rules (Critical on dangerous ports)
  * Public exposure of virtual machines
  * Encryption posture of storage accounts and managed disks
  * Network isolation of storage accounts
- Each check returns zero or more SecurityFinding objects.
"""

from typing import Any, List, Mapping, Optional, Sequence

from analyzers.base import Analyzer
from config import ANY_SOURCE_PREFIXES, DANGEROUS_PORTS
from models import SecurityAnalysis, SecurityFinding, Severity
from resources import DISK, NSG, STORAGE_ACCOUNT, VIRTUAL_MACHINE, Resource, filter_by_type

# --- Pure rule helpers -----------------------------------------------------

def port_range_matches(port_range: str, port: int) -> bool:
    """
    Return True if an NSG port expression ("22", "1000-2000", "*") covers port.
    Malformed expressions never match.
    """
    expr = (port_range or "").strip()
    if not expr:
        return False
    if expr == "*":
        return True
    if "-" in expr:
        low, _, high = expr.partition("-")
        try:
            return int(low) <= port <= int(high)
        except ValueError:
            return False
    try:
        return int(expr) == port
    except ValueError:
        return False


def exposed_dangerous_ports(port_ranges: Sequence[str]) -> List[str]:
    """Dangerous ports covered by any of the given port expressions."""
    hits = []
    for port in DANGEROUS_PORTS:
        if any(port_range_matches(expr, int(port)) for expr in port_ranges):
            hits.append(port)
    return hits


def _rule_properties(rule: Any) -> Optional[Mapping[str, Any]]:
    # ARM nests rule settings under "properties"; some exports flatten them.
    if not isinstance(rule, Mapping):
        return None
    props = rule.get("properties")
    if isinstance(props, Mapping):
        return props
    return rule


def _string_values(props: Mapping[str, Any], single: str, plural: str) -> List[str]:
    values = []
    if isinstance(props.get(single), str):
        values.append(props[single])
    if isinstance(props.get(plural), list):
        values.extend(v for v in props[plural] if isinstance(v, str))
    return values


def open_source_prefix(props: Mapping[str, Any]) -> Optional[str]:
    """Return the wildcard source prefix of an NSG rule, or None."""
    any_prefixes = {p.lower() for p in ANY_SOURCE_PREFIXES}
    for prefix in _string_values(props, "sourceAddressPrefix", "sourceAddressPrefixes"):
        if prefix.strip().lower() in any_prefixes:
            return prefix
    return None


def is_inbound_allow(props: Mapping[str, Any]) -> bool:
    direction = str(props.get("direction", "")).lower()
    access = str(props.get("access", "")).lower()
    return direction == "inbound" and access == "allow"


# --- Analyzer ---------------------------------------------------------------

class SecurityAnalyzer(Analyzer[SecurityAnalysis]):
    name = "security"

    def rules(self):
        return [
            self.check_nsg_rules,
            self.check_public_exposure,
            self.check_encryption,
            self.check_network_isolation,
        ]

    def build_result(self, resources, findings) -> SecurityAnalysis:
        return SecurityAnalysis(findings=tuple(findings))

    def check_nsg_rules(self, resources: Sequence[Resource]) -> List[SecurityFinding]:
        """Inbound Allow rules whose source is any/Internet."""
        findings: List[SecurityFinding] = []
        for nsg in filter_by_type(resources, NSG):
            for rule in nsg.get_list("properties", "securityRules"):
                props = _rule_properties(rule)
                if props is None or not is_inbound_allow(props):
                    continue
                source = open_source_prefix(props)
                if source is None:
                    continue
                rule_name = rule.get("name") or props.get("name") or "unnamed"
                ports = _string_values(props, "destinationPortRange", "destinationPortRanges")
                port_label = ",".join(ports) or "any"
                dangerous = exposed_dangerous_ports(ports)
                if dangerous:
                    severity = Severity.CRITICAL
                    issue = (f"NSG rule '{rule_name}' allows port {port_label} from Internet "
                             f"(exposes {', '.join(dangerous)})")
                else:
                    severity = Severity.MEDIUM
                    issue = f"NSG rule '{rule_name}' allows inbound traffic from Internet ({source})"
                findings.append(SecurityFinding(
                    severity=severity,
                    category="NSG",
                    resources=(nsg.name,),
                    issue=issue,
                    impact="Resources may be exposed to attacks from the Internet",
                    remediation="Restrict source IP ranges to known trusted networks. "
                                "Use Azure Bastion for management access.",
                ))
        return findings

    def check_public_exposure(self, resources: Sequence[Resource]) -> List[SecurityFinding]:
        """
        Flag every virtual machine as potentially publicly exposed.

        Known over-approximation: NIC / public IP association is not checked,
        so VMs without a public IP are reported too.
        """
        findings: List[SecurityFinding] = []
        for vm in filter_by_type(resources, VIRTUAL_MACHINE):
            findings.append(SecurityFinding(
                severity=Severity.HIGH,
                category="PublicExposure",
                resources=(vm.name,),
                issue="Virtual Machine may have public IP exposure",
                impact="Direct internet exposure increases attack surface",
                remediation="Use Azure Bastion for secure remote access instead of public IPs",
            ))
        return findings

    def check_encryption(self, resources: Sequence[Resource]) -> List[SecurityFinding]:
        """Missing encryption block -> Medium; present but incomplete -> Low."""
        findings: List[SecurityFinding] = []
        for res in resources:
            if res.properties is None:
                continue
            if res.type == STORAGE_ACCOUNT:
                encryption = res.get_mapping("properties", "encryption")
                if encryption is None:
                    findings.append(SecurityFinding(
                        severity=Severity.MEDIUM,
                        category="Encryption",
                        resources=(res.name,),
                        issue="Storage account encryption status unclear",
                        impact="Data at rest may not be encrypted",
                        remediation="Enable storage account encryption with customer-managed keys",
                    ))
                elif not isinstance(encryption.get("services"), Mapping):
                    findings.append(SecurityFinding(
                        severity=Severity.LOW,
                        category="Encryption",
                        resources=(res.name,),
                        issue="Storage encryption services not configured",
                        impact="Some storage services may not be encrypted",
                        remediation="Enable encryption for Blob, File, Table, and Queue services",
                    ))
            elif res.type == DISK:
                encryption = res.get_mapping("properties", "encryption")
                ade = res.get_mapping("properties", "encryptionSettingsCollection")
                if encryption is None and ade is None:
                    findings.append(SecurityFinding(
                        severity=Severity.MEDIUM,
                        category="Encryption",
                        resources=(res.name,),
                        issue="Disk encryption not configured",
                        impact="Disk data at rest may not be encrypted",
                        remediation="Enable Azure Disk Encryption (ADE) or use encryption at host",
                    ))
                elif (ade is not None and ade.get("enabled") is False) or \
                        (encryption is not None and not encryption.get("type")):
                    findings.append(SecurityFinding(
                        severity=Severity.LOW,
                        category="Encryption",
                        resources=(res.name,),
                        issue="Disk encryption configuration incomplete",
                        impact="Disk data at rest is not encrypted with customer-managed keys",
                        remediation="Enable Azure Disk Encryption (ADE) or a disk encryption set",
                    ))
        return findings

    def check_network_isolation(self, resources: Sequence[Resource]) -> List[SecurityFinding]:
        """Storage accounts whose network ACL default action is Allow."""
        findings: List[SecurityFinding] = []
        for sa in filter_by_type(resources, STORAGE_ACCOUNT):
            default_action = sa.get_str("properties", "networkAcls", "defaultAction")
            if default_action.lower() == "allow":
                findings.append(SecurityFinding(
                    severity=Severity.MEDIUM,
                    category="NetworkIsolation",
                    resources=(sa.name,),
                    issue="Storage account allows public network access",
                    impact="Data can be accessed from any network",
                    remediation="Configure network ACLs to deny by default and use private endpoints",
                ))
        return findings


def analyze_security(resources: Sequence[Resource]) -> SecurityAnalysis:
    return SecurityAnalyzer().analyze(resources)
