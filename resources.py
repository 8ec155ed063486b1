# resources.py
"""
Resource Store: the flat inventory produced by the fetch/cache layer.

- load_resources reads the cached JSON inventory (array, or object with a
  "resources"/"data" array).
- Resource is a schema-on-read wrapper: every key-path lookup returns either
  the value or the MISSING sentinel, never raises. Analyzers rely on this to
  degrade to "no finding" when a resource's shape is unexpected.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from exceptions import InputError
from utils import load_json_file


class _Missing:
    """Sentinel for an absent or wrong-shaped key path."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()

PathKey = Union[str, int]


def get_path(data: Any, *path: PathKey) -> Any:
    """
    Walk nested mappings (str keys) and sequences (int indexes).

    Returns MISSING when any step is absent or the container has the wrong type.
    """
    current = data
    for key in path:
        if isinstance(key, int) and not isinstance(key, bool):
            if not isinstance(current, list) or not -len(current) <= key < len(current):
                return MISSING
            current = current[key]
        else:
            if not isinstance(current, Mapping) or key not in current:
                return MISSING
            current = current[key]
    return current


class Resource:
    """Read-only view over one resource record."""

    __slots__ = ("_raw",)

    def __init__(self, raw: Mapping[str, Any]):
        self._raw = raw if isinstance(raw, Mapping) else {}

    def __repr__(self) -> str:
        return f"Resource(type={self.type!r}, name={self.name!r})"

    @property
    def raw(self) -> Mapping[str, Any]:
        return self._raw

    # --- typed accessors -----------------------------------------------------

    def get(self, *path: PathKey) -> Any:
        return get_path(self._raw, *path)

    def get_str(self, *path: PathKey, default: str = "") -> str:
        value = self.get(*path)
        return value if isinstance(value, str) else default

    def get_number(self, *path: PathKey, default: Optional[float] = None) -> Optional[float]:
        value = self.get(*path)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return default
        return float(value)

    def get_mapping(self, *path: PathKey) -> Optional[Mapping[str, Any]]:
        value = self.get(*path)
        return value if isinstance(value, Mapping) else None

    def get_list(self, *path: PathKey) -> List[Any]:
        value = self.get(*path)
        return value if isinstance(value, list) else []

    def prop(self, *path: PathKey) -> Any:
        return self.get("properties", *path)

    # --- well-known fields --------------------------------------------------

    @property
    def id(self) -> str:
        return self.get_str("id")

    @property
    def name(self) -> str:
        return self.get_str("name")

    @property
    def type(self) -> str:
        """Resource type, lower-cased for comparisons."""
        return self.get_str("type").lower()

    @property
    def resource_group(self) -> str:
        return self.get_str("resourceGroup")

    @property
    def location(self) -> str:
        return self.get_str("location")

    @property
    def tags(self) -> Dict[str, str]:
        """Tags as str -> str; empty when absent or malformed."""
        tags = self.get_mapping("tags")
        if not tags:
            return {}
        return {str(k): v if isinstance(v, str) else str(v) for k, v in tags.items()}

    @property
    def has_tags_field(self) -> bool:
        return self.get_mapping("tags") is not None

    @property
    def sku(self) -> str:
        """SKU name ("Standard_LRS", "Standard"), empty when absent."""
        return self.get_str("sku", "name")

    @property
    def properties(self) -> Optional[Mapping[str, Any]]:
        return self.get_mapping("properties")

    def is_type(self, resource_type: str) -> bool:
        return self.type == resource_type.lower()


# Resource type constants (lower-case)
VIRTUAL_NETWORK = "microsoft.network/virtualnetworks"
SUBNET = "microsoft.network/virtualnetworks/subnets"
NSG = "microsoft.network/networksecuritygroups"
ROUTE_TABLE = "microsoft.network/routetables"
LOAD_BALANCER = "microsoft.network/loadbalancers"
NAT_GATEWAY = "microsoft.network/natgateways"
PUBLIC_IP = "microsoft.network/publicipaddresses"
NETWORK_INTERFACE = "microsoft.network/networkinterfaces"
VIRTUAL_MACHINE = "microsoft.compute/virtualmachines"
DISK = "microsoft.compute/disks"
STORAGE_ACCOUNT = "microsoft.storage/storageaccounts"
WEB_SITE = "microsoft.web/sites"
RECOVERY_VAULT = "microsoft.recoveryservices/vaults"
PROTECTED_ITEM = "microsoft.recoveryservices/vaults/backupfabrics/protectioncontainers/protecteditems"
DIAGNOSTIC_SETTING = "microsoft.insights/diagnosticsettings"


def to_resources(records: Iterable[Any]) -> List[Resource]:
    """Wrap raw records; non-mapping entries are dropped."""
    return [Resource(r) for r in records if isinstance(r, Mapping)]


def load_resources(path: str) -> List[Resource]:
    """
    Load the cached inventory from disk.

    Accepts a JSON array of records or an object holding the array under
    "resources" or "data".
    """
    try:
        data = load_json_file(path)
    except FileNotFoundError as e:
        raise InputError(str(e), e) from e
    except ValueError as e:
        raise InputError(str(e), e) from e

    if isinstance(data, Mapping):
        for key in ("resources", "data"):
            if isinstance(data.get(key), list):
                data = data[key]
                break
    if not isinstance(data, list):
        raise InputError(f"Inventory in {path} is not a list of resources")
    return to_resources(data)


def filter_by_type(resources: Iterable[Resource], resource_type: str) -> List[Resource]:
    resource_type = resource_type.lower()
    return [r for r in resources if r.type == resource_type]


def filter_by_resource_group(resources: Iterable[Resource], resource_group: str) -> List[Resource]:
    return [r for r in resources if r.resource_group == resource_group]


def group_by_resource_group(resources: Iterable[Resource]) -> Dict[str, List[Resource]]:
    groups: Dict[str, List[Resource]] = {}
    for r in resources:
        groups.setdefault(r.resource_group, []).append(r)
    return groups


def count_by_type(resources: Iterable[Resource]) -> Dict[str, int]:
    """Resource counts keyed by lower-cased type, most common first."""
    counts: Dict[str, int] = {}
    for r in resources:
        key = r.type or "unknown"
        counts[key] = counts.get(key, 0) + 1
    return dict(sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])))
