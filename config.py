"""
Central configuration and tunable constants.

- Rule thresholds and static cost estimates are centralized for easy tuning.
- Settings is built from environment variables, overridden by CLI args, and
  passed explicitly to every component.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

# Ports that escalate an allow-from-anywhere NSG rule to Critical:
# SSH, RDP, SQL Server, MySQL, PostgreSQL, MongoDB, Redis
DANGEROUS_PORTS = ["22", "3389", "1433", "3306", "5432", "27017", "6379"]

# Source prefixes treated as "any"
ANY_SOURCE_PREFIXES = ["*", "0.0.0.0/0", "Internet", "Any"]

# Score penalties per finding severity
SECURITY_PENALTIES = {"Critical": 20, "High": 10, "Medium": 5, "Low": 2}
COMPLIANCE_PENALTIES = {"Critical": 15, "High": 10, "Medium": 5, "Low": 2}
TAGGING_PENALTIES = {"High": 10, "Medium": 5, "Low": 2}

# Rough monthly cost estimates (USD-ish, not billing accurate)
VM_MONTHLY_COST = {
    "Standard_B1s": 7.5,
    "Standard_B2s": 30.0,
    "Standard_B2ms": 60.0,
    "Standard_D2s_v3": 70.0,
    "Standard_D4s_v3": 140.0,
    "Standard_E2s_v3": 87.0,
    "Standard_E4s_v3": 175.0,
}
DEFAULT_VM_SIZE = "Standard_B2s"
DEFAULT_VM_MONTHLY_COST = 50.0
OVERSIZED_VM_FAMILIES = ["Standard_D", "Standard_E"]
IDLE_SAVINGS_RATIO = 0.7
OVERSIZED_SAVINGS_RATIO = 0.4
DISK_COST_PER_GB = 0.12
DEFAULT_DISK_SIZE_GB = 128
PUBLIC_IP_MONTHLY_COST = 3.65
STORAGE_ACCOUNT_MONTHLY_COST = 50.0
HOT_TIER_SAVINGS = 25.0
NAT_GATEWAY_MONTHLY_COST = 33.0

# Tagging
DEFAULT_REQUIRED_TAGS = ["environment", "owner", "cost-center", "application"]
HIGH_SEVERITY_TAGS = ["owner", "cost-center"]
ENVIRONMENT_TAG_KEYS = ["environment", "env"]
MAX_ENVIRONMENT_VALUES = 5
CANONICAL_ENVIRONMENTS = ["production", "staging", "development", "test"]
SYSTEM_RESOURCE_TYPES = [
    "microsoft.network/networkwatchers",
    "microsoft.insights/actiongroups",
    "microsoft.operationalinsights/workspaces",
]

# Compliance
MONITORABLE_TYPES = [
    "microsoft.compute/virtualmachines",
    "microsoft.storage/storageaccounts",
    "microsoft.network/applicationgateways",
    "microsoft.network/loadbalancers",
    "microsoft.web/sites",
    "microsoft.sql/servers",
]
BACKUP_COVERAGE_WEIGHT = 0.3
MONITORING_COVERAGE_WEIGHT = 0.2
MONITORING_FINDING_SAMPLE = 5
LOCALLY_REDUNDANT_MARKER = "LRS"

# Priority actions
PRIORITY_SAVINGS_THRESHOLD = 20.0
PRIORITY_TAG_MIN_RESOURCES = 5

# Rendering
DISPLAY_CAP = 10
DEFAULT_MD_NAME = "SUBSCRIPTION.md"

# Narrative service (Amazon Bedrock)
DEFAULT_AWS_REGION = "us-east-1"
DEFAULT_BEDROCK_MODEL_ID = "us.anthropic.claude-3-5-haiku-20241022-v1:0"
NARRATIVE_MAX_TOKENS = 2500
NARRATIVE_TEMPERATURE = 0.3


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.environ.get(name, "")
    values = [v.strip() for v in raw.split(",") if v.strip()]
    return values or list(default)


@dataclass
class Settings:
    """Run settings loaded from environment variables and CLI flags."""

    input_path: str = field(default_factory=lambda: os.environ.get("AZDOC_INPUT", "./data/raw/all-resources.json"))
    out_dir: str = field(default_factory=lambda: os.environ.get("AZDOC_OUT", "./docs"))
    md_name: str = DEFAULT_MD_NAME
    with_diagrams: bool = True
    enable_ai: bool = field(
        default_factory=lambda: os.environ.get("AZDOC_ENABLE_AI", "false").lower() == "true"
    )
    region: str = field(default_factory=lambda: os.environ.get("AWS_REGION", DEFAULT_AWS_REGION))
    model_id: str = field(default_factory=lambda: os.environ.get("BEDROCK_MODEL_ID", DEFAULT_BEDROCK_MODEL_ID))
    required_tags: List[str] = field(default_factory=lambda: _env_list("AZDOC_REQUIRED_TAGS", DEFAULT_REQUIRED_TAGS))
    subscription: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings instance from environment variables."""
        return cls()

    @property
    def diagrams_dir(self) -> str:
        return os.path.join(self.out_dir, "diagrams")

    def validate(self) -> None:
        """Validate settings before a run."""
        if not self.input_path:
            raise ValueError("an input inventory file is required")
        if not self.md_name.endswith(".md"):
            raise ValueError(f"markdown file name must end with .md: {self.md_name}")
        if not self.required_tags:
            raise ValueError("at least one required tag must be configured")
        if self.enable_ai and not self.model_id:
            raise ValueError("BEDROCK_MODEL_ID is required when AI is enabled")
