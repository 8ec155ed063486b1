# narrative.py
"""
Narrative/insight service backed by Amazon Bedrock (Converse API).

Every operation is a single best-effort call:
- the model is asked for JSON only, and the reply is parsed leniently
  (a surrounding ```json fence is tolerated)
- SDK errors, empty replies and wrong JSON shapes raise NarrativeError
- no retries; callers log the error and fall back to deterministic output
- when AI is disabled each operation returns an empty result without
  touching AWS
"""

import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from config import NARRATIVE_MAX_TOKENS, NARRATIVE_TEMPERATURE, Settings
from exceptions import NarrativeError
from models import Finding
from resources import Resource, group_by_resource_group

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


# --- Reply types -------------------------------------------------------------

@dataclass
class ConnectionSuggestion:
    source_resource: str
    target_resource: str
    connection_type: str = "association"
    label: str = ""
    confidence: str = "low"
    reason: str = ""

    @property
    def is_high_confidence(self) -> bool:
        return self.confidence.strip().lower() == "high"


@dataclass
class LayoutSuggestion:
    resource_name: str
    x: float
    y: float
    subnet_name: str = ""
    grouping: str = ""
    reason: str = ""


@dataclass
class SecurityInsight:
    category: str
    severity: str
    title: str
    description: str = ""
    risk_level: str = ""
    impact: str = ""
    recommendations: List[str] = field(default_factory=list)
    priority: int = 0


@dataclass
class CostInsight:
    category: str
    title: str
    description: str = ""
    estimated_savings: float = 0.0
    effort: str = ""
    recommendations: List[str] = field(default_factory=list)
    priority: int = 0


@dataclass
class ArchitectureDescription:
    overview: str
    resource_group_insights: Dict[str, str] = field(default_factory=dict)
    key_findings: List[str] = field(default_factory=list)


# --- Parsing helpers ---------------------------------------------------------

def strip_fence(text: str) -> str:
    text = text.strip()
    match = _FENCE.match(text)
    return match.group(1) if match else text


def parse_json_reply(operation: str, text: str) -> Any:
    try:
        return json.loads(strip_fence(text))
    except ValueError as e:
        raise NarrativeError(operation, f"reply is not valid JSON: {e}", e) from e


def _expect_list(operation: str, data: Any) -> List[Dict[str, Any]]:
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise NarrativeError(operation, "expected a JSON array of objects")
    return data


def _text(item: Dict[str, Any], key: str, operation: str, required: bool = False) -> str:
    value = item.get(key)
    if value is None and not required:
        return ""
    if not isinstance(value, str) or (required and not value.strip()):
        raise NarrativeError(operation, f"field '{key}' must be a non-empty string")
    return value


def _number(item: Dict[str, Any], key: str, operation: str, required: bool = False) -> float:
    value = item.get(key)
    if value is None and not required:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise NarrativeError(operation, f"field '{key}' must be a number")
    try:
        number = float(value)
    except OverflowError as e:
        raise NarrativeError(operation, f"field '{key}' must be a finite number", e) from e
    if not math.isfinite(number):
        raise NarrativeError(operation, f"field '{key}' must be a finite number")
    return number


def _strings(item: Dict[str, Any], key: str) -> List[str]:
    value = item.get(key)
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if isinstance(v, (str, int, float))]


def resource_payload(resources: Sequence[Resource]) -> List[Dict[str, Any]]:
    """Compact view of resources for prompts (no tags, no sku)."""
    return [
        {
            "name": r.name,
            "type": r.type,
            "resourceGroup": r.resource_group,
            "id": r.id,
            "properties": r.properties or {},
        }
        for r in resources
    ]


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)


# --- Service -------------------------------------------------------------------

class NarrativeService:
    """Thin client over bedrock-runtime converse, one method per insight kind."""

    def __init__(self, settings: Settings, session: Optional[boto3.Session] = None, client=None):
        self.settings = settings
        self._session = session
        self._client = client

    @property
    def enabled(self) -> bool:
        return self.settings.enable_ai

    @property
    def client(self):
        if self._client is None:
            session = self._session or boto3.Session(region_name=self.settings.region)
            self._client = session.client("bedrock-runtime", region_name=self.settings.region)
        return self._client

    def converse(self, operation: str, system: str, prompt: str,
                 temperature: float = NARRATIVE_TEMPERATURE,
                 max_tokens: int = NARRATIVE_MAX_TOKENS) -> str:
        """Send one prompt and return the reply text."""
        logger.debug("Bedrock converse (%s) with model %s", operation, self.settings.model_id)
        try:
            response = self.client.converse(
                modelId=self.settings.model_id,
                system=[{"text": system}],
                messages=[{"role": "user", "content": [{"text": prompt}]}],
                inferenceConfig={"temperature": temperature, "maxTokens": max_tokens},
            )
        except (ClientError, BotoCoreError) as e:
            raise NarrativeError(operation, f"Bedrock call failed: {e}", e) from e

        try:
            blocks = response["output"]["message"]["content"]
            text = "".join(b.get("text", "") for b in blocks if isinstance(b, dict))
        except (KeyError, TypeError) as e:
            raise NarrativeError(operation, "unexpected converse response shape", e) from e
        if not text.strip():
            raise NarrativeError(operation, "empty reply from model")
        if response.get("stopReason") == "max_tokens":
            logger.warning("Bedrock reply for %s was truncated at %d tokens", operation, max_tokens)
        return text

    # --- diagram helpers -------------------------------------------------------

    def discover_connections(self, resources: Sequence[Resource]) -> List[ConnectionSuggestion]:
        if not self.enabled:
            return []
        op = "discover_connections"
        prompt = f"""Analyze these Azure resources and identify the logical connections between them.

Resources:
{_dump(resource_payload(resources))}

Instructions:
1. Use Azure properties first (NICs attached to VMs, Function Apps using Storage Accounts, NSG associations, VNet peerings)
2. Look for subnet associations, VNet integrations, public IP attachments
3. Naming conventions are a weaker signal (e.g. "vm-hub-jumpbox-nic" likely belongs to "vm-hub-jumpbox")

Return ONLY a JSON array:
[
  {{
    "source_resource": "resource-name-1",
    "target_resource": "resource-name-2",
    "connection_type": "association|peering|routing|natgw",
    "label": "short description",
    "confidence": "high|medium|low",
    "reason": "why this connection exists"
  }}
]"""
        reply = self.converse(op, "You are an Azure infrastructure analysis expert. You reply with JSON only.", prompt)
        suggestions = []
        for item in _expect_list(op, parse_json_reply(op, reply)):
            suggestions.append(ConnectionSuggestion(
                source_resource=_text(item, "source_resource", op, required=True),
                target_resource=_text(item, "target_resource", op, required=True),
                connection_type=_text(item, "connection_type", op) or "association",
                label=_text(item, "label", op),
                confidence=_text(item, "confidence", op) or "low",
                reason=_text(item, "reason", op),
            ))
        return suggestions

    def optimize_layout(self, resources: Sequence[Resource],
                        subnets: Sequence[Dict[str, str]]) -> List[LayoutSuggestion]:
        if not self.enabled:
            return []
        op = "optimize_layout"
        prompt = f"""Suggest positions for these resources in a network diagram.

Resources:
{_dump(resource_payload(resources))}

Subnets:
{_dump(list(subnets))}

Diagram constraints:
- VNet container: 1100x600 pixels, starting at (50, 50)
- Subnet containers: 350x120 pixels each, stacked vertically
- Icons are 50x50; leave at least 80px between resources

Instructions:
1. Place compute resources (VMs, Function Apps) inside their subnets
2. Place network resources (NSGs, route tables, load balancers, NAT gateways) outside subnets but near them
3. Avoid overlapping

Return ONLY a JSON array:
[
  {{
    "resource_name": "exact-resource-name",
    "x": 100.0,
    "y": 150.0,
    "subnet_name": "subnet-name-if-inside",
    "grouping": "subnet|tier|function",
    "reason": "why positioned here"
  }}
]"""
        reply = self.converse(op, "You are a diagram layout expert. You reply with JSON only.", prompt,
                              temperature=0.2)
        hints = []
        for item in _expect_list(op, parse_json_reply(op, reply)):
            hints.append(LayoutSuggestion(
                resource_name=_text(item, "resource_name", op, required=True),
                x=_number(item, "x", op, required=True),
                y=_number(item, "y", op, required=True),
                subnet_name=_text(item, "subnet_name", op),
                grouping=_text(item, "grouping", op),
                reason=_text(item, "reason", op),
            ))
        return hints

    # --- markdown helpers ------------------------------------------------------

    def security_insights(self, findings: Sequence[Finding]) -> List[SecurityInsight]:
        if not self.enabled or not findings:
            return []
        op = "security_insights"
        prompt = f"""Analyze these Azure security findings and provide actionable insights.

Security Findings:
{_dump([f.to_dict() for f in findings])}

Instructions:
1. Identify the most critical risks and group related findings into themes
2. Give specific, actionable recommendations, prioritized by risk and ease of remediation

Return ONLY a JSON array with the top 5-8 insights:
[
  {{
    "category": "Network Security|Identity|Encryption|Compliance",
    "severity": "Critical|High|Medium|Low",
    "title": "concise insight title",
    "description": "explanation of the concern",
    "risk_level": "description of potential risk",
    "impact": "what could happen if not addressed",
    "recommendations": ["specific action 1", "specific action 2"],
    "priority": 1
  }}
]"""
        reply = self.converse(op, "You are an Azure security expert. You reply with JSON only.", prompt)
        insights = []
        for item in _expect_list(op, parse_json_reply(op, reply)):
            insights.append(SecurityInsight(
                category=_text(item, "category", op),
                severity=_text(item, "severity", op),
                title=_text(item, "title", op, required=True),
                description=_text(item, "description", op),
                risk_level=_text(item, "risk_level", op),
                impact=_text(item, "impact", op),
                recommendations=_strings(item, "recommendations"),
                priority=int(_number(item, "priority", op)),
            ))
        return sorted(insights, key=lambda i: i.priority or 99)

    def cost_insights(self, findings: Sequence[Finding]) -> List[CostInsight]:
        if not self.enabled or not findings:
            return []
        op = "cost_insights"
        prompt = f"""Analyze these Azure cost findings and provide strategic optimization insights.

Cost Findings:
{_dump([f.to_dict() for f in findings])}

Instructions:
1. Identify the highest-impact opportunities and group related findings
2. Estimate effort (Low/Medium/High) for each recommendation
3. Consider reserved instances, right-sizing and architectural changes

Return ONLY a JSON array with the top 5-8 insights:
[
  {{
    "category": "Compute|Storage|Network|Database|Licensing",
    "title": "concise optimization opportunity",
    "description": "explanation of the cost issue",
    "estimated_savings": 123.45,
    "effort": "Low|Medium|High",
    "recommendations": ["specific action 1", "specific action 2"],
    "priority": 1
  }}
]"""
        reply = self.converse(op, "You are an Azure cost optimization expert. You reply with JSON only.", prompt)
        insights = []
        for item in _expect_list(op, parse_json_reply(op, reply)):
            insights.append(CostInsight(
                category=_text(item, "category", op),
                title=_text(item, "title", op, required=True),
                description=_text(item, "description", op),
                estimated_savings=_number(item, "estimated_savings", op),
                effort=_text(item, "effort", op),
                recommendations=_strings(item, "recommendations"),
                priority=int(_number(item, "priority", op)),
            ))
        return sorted(insights, key=lambda i: i.priority or 99)

    def describe_architecture(self, resources: Sequence[Resource]) -> Optional[ArchitectureDescription]:
        if not self.enabled or not resources:
            return None
        op = "describe_architecture"
        grouped = {rg or "(none)": resource_payload(items) for rg, items in group_by_resource_group(resources).items()}
        prompt = f"""Describe this Azure subscription for its operators.

Resources grouped by Resource Group:
{_dump(grouped)}

Instructions:
1. A high-level overview of the whole architecture (2-3 sentences)
2. For each resource group, 1-2 sentences on its purpose and key resources
3. 3-5 key findings or notable aspects

Return ONLY a JSON object:
{{
  "overview": "High-level architecture summary",
  "resource_group_insights": {{"resource-group-name": "description"}},
  "key_findings": ["Notable finding 1", "Notable finding 2"]
}}"""
        reply = self.converse(op, "You are an Azure architecture documentation expert. You reply with JSON only.",
                              prompt, temperature=0.4, max_tokens=1500)
        data = parse_json_reply(op, reply)
        if not isinstance(data, dict):
            raise NarrativeError(op, "expected a JSON object")
        insights = data.get("resource_group_insights")
        return ArchitectureDescription(
            overview=_text(data, "overview", op, required=True),
            resource_group_insights={str(k): str(v) for k, v in insights.items()} if isinstance(insights, dict) else {},
            key_findings=_strings(data, "key_findings"),
        )
