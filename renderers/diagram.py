# renderers/diagram.py
"""
Layout & diagram renderer.

Produces one draw.io document per virtual network and one overview of the
whole subscription. Placement is deterministic:

- the VNet is a container that grows to hold its children; its subnets are
  stacked inside it, each tall enough for the slot rows it has to hold
- NSGs, route tables, load balancers and NAT gateways of the VNet's resource
  group sit in fixed lanes right of the subnet column; public IPs and
  storage accounts get lanes of their own
- VMs, NICs and Function Apps go into a subnet picked by name
  ("management", "services", "apps"), in a row-wrapping slot grid, or into a
  fallback grid inside the VNet when no subnet name matches

Edges come either from the naming heuristics below or, when the narrative
service returned connection suggestions, from its high-confidence
suggestions only. The two sources are never mixed in one diagram.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from config import Settings
from exceptions import ArtifactWriteError, NarrativeError
from narrative import ConnectionSuggestion, LayoutSuggestion, NarrativeService
from renderers.drawio import TEXT_STYLE, TITLE_STYLE, DiagramDocument, slug
from resources import (
    LOAD_BALANCER,
    NAT_GATEWAY,
    NETWORK_INTERFACE,
    NSG,
    PUBLIC_IP,
    ROUTE_TABLE,
    STORAGE_ACCOUNT,
    VIRTUAL_MACHINE,
    VIRTUAL_NETWORK,
    WEB_SITE,
    Resource,
    filter_by_type,
    get_path,
)

logger = logging.getLogger(__name__)

# --- Layout constants ----------------------------------------------------------

VNET_X, VNET_Y, VNET_W, VNET_H = 50, 50, 1100, 600
SUBNET_X, SUBNET_Y, SUBNET_W, SUBNET_H, SUBNET_GAP = 100, 120, 350, 120, 20

# (resource type, icon, lane x); lanes start at LANE_Y and step LANE_STEP
LANES = [
    (NSG, "nsg", 520),
    (ROUTE_TABLE, "routetable", 650),
    (LOAD_BALANCER, "loadbalancer", 780),
    (NAT_GATEWAY, "natgateway", 910),
]
LANE_Y, LANE_STEP = 150, 100
PIP_X, PIP_Y, PIP_STEP = 1040, 400, 80
STORAGE_X, STORAGE_Y, STORAGE_STEP = 520, 450, 70

# slot grid inside a subnet, relative to the subnet origin
SLOT_DX, SLOT_DY, SLOT_STEP, SLOT_ROW_STEP, SLOTS_PER_ROW = 20, 40, 80, 60, 4
FALLBACK_X, FALLBACK_Y = 200, 300

COMPUTE_SUBNETS = ("management", "services", "apps")
FUNCTION_SUBNETS = ("apps", "services")
SUBNET_NAME_PREFIXES = ("subnet-", "snet-", "sn-")
FUNCTION_MARKER = "func"
FUNCTION_STORAGE_MARKER = "stfunc"

OVERVIEW_X, OVERVIEW_Y = 100, 80
OVERVIEW_STEP, OVERVIEW_ROW_STEP, OVERVIEW_WRAP = 80, 70, 10
OVERVIEW_SECTIONS = [
    (NSG, "nsg", "Network Security Groups"),
    (ROUTE_TABLE, "rt", "Route Tables"),
    (LOAD_BALANCER, "lb", "Load Balancers"),
    (NAT_GATEWAY, "nat", "NAT Gateways"),
    (PUBLIC_IP, "pip", "Public IP Addresses"),
    (VIRTUAL_MACHINE, "vm", "Virtual Machines"),
    (STORAGE_ACCOUNT, "storage", "Storage Accounts"),
]
OVERVIEW_ICONS = {
    "nsg": "nsg", "rt": "routetable", "lb": "loadbalancer", "nat": "natgateway",
    "pip": "publicip", "vm": "vm", "storage": "storage",
}
OVERVIEW_FILE = "Overview.drawio"


class Grid:
    """Hands out positions left to right, wrapping after per_row items."""

    def __init__(self, x: float, y: float, step_x: float, step_y: float, per_row: int):
        self.x, self.y = x, y
        self.step_x, self.step_y = step_x, step_y
        self.per_row = max(1, per_row)
        self.used = 0

    def next(self) -> Tuple[float, float]:
        col, row = self.used % self.per_row, self.used // self.per_row
        self.used += 1
        return self.x + col * self.step_x, self.y + row * self.step_y

    @property
    def next_y(self) -> float:
        """Top of the first row not yet started."""
        rows = (self.used + self.per_row - 1) // self.per_row
        return self.y + rows * self.step_y


def lane(x: float, y: float, step: float) -> Grid:
    return Grid(x, y, 0, step, 1)


@dataclass
class Subnet:
    name: str
    prefix: str


@dataclass
class DiagramReport:
    """Outcome of one render_all call: files written plus per-file failures."""
    written: List[str] = field(default_factory=list)
    errors: List[ArtifactWriteError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


# --- Helpers ---------------------------------------------------------------------

def extract_subnets(vnet: Resource) -> List[Subnet]:
    """Subnets from properties.subnets; malformed entries are skipped."""
    subnets = []
    for entry in vnet.get_list("properties", "subnets"):
        name = get_path(entry, "name")
        if not isinstance(name, str) or not name:
            continue
        prefix = get_path(entry, "properties", "addressPrefix")
        if not isinstance(prefix, str):
            prefix = get_path(entry, "properties", "addressPrefixes", 0)
        subnets.append(Subnet(name=name, prefix=prefix if isinstance(prefix, str) else ""))
    return subnets


def subnet_role(name: str) -> str:
    """'subnet-management' and 'Management' both have the role 'management'."""
    role = name.strip().lower()
    for prefix in SUBNET_NAME_PREFIXES:
        if role.startswith(prefix):
            return role[len(prefix):]
    return role


def pick_subnet(roles: Dict[str, int], preferred: Sequence[str]) -> Optional[int]:
    """Index of the first subnet whose role is in preferred (in that order)."""
    for wanted in preferred:
        if wanted in roles:
            return roles[wanted]
    return None


def subnet_height(items: int) -> float:
    """Container height that fits items slots, never below SUBNET_H."""
    rows = -(-items // SLOTS_PER_ROW)
    return max(SUBNET_H, SLOT_DY + rows * SLOT_ROW_STEP)


def same_group(resources: Sequence[Resource], resource_group: str) -> List[Resource]:
    rg = resource_group.lower()
    return [r for r in resources if r.resource_group.lower() == rg]


def name_token(name: str) -> str:
    """First hyphen-delimited token of a name, lower-cased."""
    return name.split("-", 1)[0].strip().lower()


# --- Renderer --------------------------------------------------------------------

class DiagramRenderer:
    """Renders VNet and overview diagrams into settings.diagrams_dir."""

    def __init__(self, settings: Settings, narrative: Optional[NarrativeService] = None):
        self.settings = settings
        self.narrative = narrative

    @property
    def ai_enabled(self) -> bool:
        return self.narrative is not None and self.narrative.enabled

    def render_all(self, resources: Sequence[Resource]) -> DiagramReport:
        report = DiagramReport()
        out_dir = self.settings.diagrams_dir

        connections: List[ConnectionSuggestion] = []
        if self.ai_enabled:
            try:
                connections = self.narrative.discover_connections(resources)
                logger.info("AI suggested %d connections", len(connections))
            except NarrativeError as e:
                logger.warning("AI connection discovery failed, using rule-based connections: %s", e)

        used_names = set()
        for vnet in filter_by_type(resources, VIRTUAL_NETWORK):
            hints = self._layout_hints(vnet, resources)
            doc = self.render_vnet(vnet, resources, connections, hints)
            filename = slug(vnet.name or "vnet")
            while filename.lower() in used_names:
                filename += "_"
            used_names.add(filename.lower())
            self._save(doc, os.path.join(out_dir, f"{filename}.drawio"), report)

        self._save(self.render_overview(resources), os.path.join(out_dir, OVERVIEW_FILE), report)
        return report

    def _save(self, doc: DiagramDocument, path: str, report: DiagramReport) -> None:
        try:
            report.written.append(doc.save(path))
            logger.info("Diagram written: %s", path)
        except ArtifactWriteError as e:
            logger.error("Diagram failed: %s", e)
            report.errors.append(e)

    def _layout_hints(self, vnet: Resource, resources: Sequence[Resource]) -> List[LayoutSuggestion]:
        if not self.ai_enabled:
            return []
        subnets = [{"name": s.name, "address_prefix": s.prefix} for s in extract_subnets(vnet)]
        try:
            return self.narrative.optimize_layout(same_group(resources, vnet.resource_group), subnets)
        except NarrativeError as e:
            logger.warning("AI layout optimization failed for %s: %s", vnet.name, e)
            return []

    # --- per-VNet document -----------------------------------------------------

    def render_vnet(
        self,
        vnet: Resource,
        resources: Sequence[Resource],
        connections: Optional[Sequence[ConnectionSuggestion]] = None,
        layout_hints: Optional[Sequence[LayoutSuggestion]] = None,
    ) -> DiagramDocument:
        doc = DiagramDocument(vnet.name or "vnet")
        group = same_group(resources, vnet.resource_group)
        # resource name -> cell id, for AI edges and layout hints
        cells: Dict[str, str] = {}

        vnet_cell = doc.add_container(
            "vnet", f"Virtual Network: {vnet.name}\nResource Group: {vnet.resource_group}",
            "vnet", VNET_X, VNET_Y, VNET_W, VNET_H,
        )

        subnets = extract_subnets(vnet)
        roles: Dict[str, int] = {}
        for i, subnet in enumerate(subnets):
            roles.setdefault(subnet_role(subnet.name), i)
        vms = filter_by_type(group, VIRTUAL_MACHINE)
        nics = filter_by_type(group, NETWORK_INTERFACE)
        functions = filter_by_type(group, WEB_SITE)
        compute_index = pick_subnet(roles, COMPUTE_SUBNETS)
        function_index = pick_subnet(roles, FUNCTION_SUBNETS)
        load = [0] * len(subnets)
        if compute_index is not None:
            load[compute_index] += len(vms) + len(nics)
        if function_index is not None:
            load[function_index] += len(functions)

        subnet_cells: List[str] = []
        slots: Dict[str, Grid] = {}
        y = SUBNET_Y
        for i, subnet in enumerate(subnets):
            height = subnet_height(load[i])
            cell = doc.add_container(f"subnet-{i}", f"Subnet: {subnet.name}\n{subnet.prefix}",
                                     "subnet", SUBNET_X, y, SUBNET_W, height, parent=vnet_cell)
            subnet_cells.append(cell)
            slots[cell] = Grid(SUBNET_X + SLOT_DX, y + SLOT_DY, SLOT_STEP, SLOT_ROW_STEP, SLOTS_PER_ROW)
            y += height + SUBNET_GAP
        # below the last subnet, so it never runs into a subnet container
        fallback = Grid(FALLBACK_X, max(FALLBACK_Y, y), SLOT_STEP, SLOT_ROW_STEP + 10, SLOTS_PER_ROW)

        lanes: Dict[str, Grid] = {icon: lane(x, LANE_Y, LANE_STEP) for _, icon, x in LANES}
        lanes["publicip"] = lane(PIP_X, PIP_Y, PIP_STEP)
        for resource_type, icon in [(t, icon) for t, icon, _ in LANES] + [(PUBLIC_IP, "publicip")]:
            for i, res in enumerate(filter_by_type(group, resource_type)):
                x_pos, y_pos = lanes[icon].next()
                cell = doc.add_icon(f"{icon}-{i}", res.name, icon, x_pos, y_pos, parent=vnet_cell)
                cells.setdefault(res.name, cell)

        # shares x with the NSG lane, so it starts below the last NSG
        storage_lane = lane(STORAGE_X, max(STORAGE_Y, lanes["nsg"].next_y), STORAGE_STEP)
        storage = filter_by_type(group, STORAGE_ACCOUNT)
        storage_cells = []
        for i, res in enumerate(storage):
            x_pos, y_pos = storage_lane.next()
            cell = doc.add_icon(f"storage-{i}", res.name, "storage", x_pos, y_pos, parent=vnet_cell)
            cells.setdefault(res.name, cell)
            storage_cells.append(cell)

        compute_parent = subnet_cells[compute_index] if compute_index is not None else None
        vm_cells = [self._place(doc, f"vm-{i}", vm.name, "vm", compute_parent, slots, fallback, vnet_cell)
                    for i, vm in enumerate(vms)]
        nic_cells = [self._place(doc, f"nic-{i}", nic.name, "nic", compute_parent, slots, fallback, vnet_cell)
                     for i, nic in enumerate(nics)]

        function_parent = subnet_cells[function_index] if function_index is not None else None
        function_cells = [self._place(doc, f"func-{i}", fn.name, "functionapp", function_parent, slots,
                                      fallback, vnet_cell)
                          for i, fn in enumerate(functions)]

        for res, cell in zip(vms + nics + functions, vm_cells + nic_cells + function_cells):
            cells.setdefault(res.name, cell)

        if connections:
            self._ai_edges(doc, connections, cells)
        else:
            self._nic_vm_edges(doc, nics, nic_cells, vms, vm_cells)
            self._function_storage_edges(doc, functions, function_cells, storage, storage_cells)

        doc.fit_container(vnet_cell)
        for hint in layout_hints or ():
            cell = cells.get(hint.resource_name)
            if cell and doc.contains_point(vnet_cell, hint.x, hint.y):
                doc.move_vertex(cell, hint.x, hint.y)
        return doc

    @staticmethod
    def _place(doc: DiagramDocument, key: str, label: str, icon: str, subnet_cell: Optional[str],
               slots: Dict[str, Grid], fallback: Grid, vnet_cell: str) -> str:
        if subnet_cell is not None:
            x, y = slots[subnet_cell].next()
            return doc.add_icon(key, label, icon, x, y, parent=subnet_cell)
        x, y = fallback.next()
        return doc.add_icon(key, label, icon, x, y, parent=vnet_cell)

    @staticmethod
    def _nic_vm_edges(doc, nics, nic_cells, vms, vm_cells) -> None:
        """NIC -> VM when the NIC name contains the VM name's first hyphen token."""
        n = 0
        for nic, nic_cell in zip(nics, nic_cells):
            for vm, vm_cell in zip(vms, vm_cells):
                token = name_token(vm.name)
                if token and token in nic.name.lower():
                    doc.add_edge(f"nic-vm-{n}", "attached to", nic_cell, vm_cell, "association")
                    n += 1

    @staticmethod
    def _function_storage_edges(doc, functions, function_cells, storage, storage_cells) -> None:
        """Function App -> first storage account when either name carries the function marker."""
        n = 0
        for fn, fn_cell in zip(functions, function_cells):
            for st, st_cell in zip(storage, storage_cells):
                if FUNCTION_STORAGE_MARKER in st.name.lower() or FUNCTION_MARKER in fn.name.lower():
                    doc.add_edge(f"func-storage-{n}", "uses", fn_cell, st_cell, "association")
                    n += 1
                    break

    @staticmethod
    def _ai_edges(doc, connections: Sequence[ConnectionSuggestion], cells: Dict[str, str]) -> None:
        n = 0
        for suggestion in connections:
            if not suggestion.is_high_confidence:
                continue
            source = cells.get(suggestion.source_resource)
            target = cells.get(suggestion.target_resource)
            if source is None or target is None or source == target:
                continue
            doc.add_edge(f"ai-{n}", suggestion.label, source, target, suggestion.connection_type)
            n += 1

    # --- overview --------------------------------------------------------------

    def render_overview(self, resources: Sequence[Resource]) -> DiagramDocument:
        doc = DiagramDocument("Azure-Overview")
        title = self.settings.subscription or "Azure Subscription"
        doc.add_rectangle("title", f"{title} Overview", 50, 20, 1000, 40, TITLE_STYLE)

        vnets = filter_by_type(resources, VIRTUAL_NETWORK)
        grid = Grid(OVERVIEW_X, OVERVIEW_Y, OVERVIEW_STEP + 20, OVERVIEW_ROW_STEP, OVERVIEW_WRAP)
        for i, vnet in enumerate(vnets):
            x, y = grid.next()
            doc.add_icon(f"vnet-{i}", vnet.name, "vnet", x, y)

        y = grid.next_y + 50 if vnets else OVERVIEW_Y
        for resource_type, key, title in OVERVIEW_SECTIONS:
            items = filter_by_type(resources, resource_type)
            if not items:
                continue
            doc.add_rectangle(f"{key}-label", f"{title} ({len(items)})", OVERVIEW_X, y, 200, 30, TEXT_STYLE)
            section = Grid(OVERVIEW_X, y + 40, OVERVIEW_STEP, OVERVIEW_ROW_STEP, OVERVIEW_WRAP)
            for i, res in enumerate(items):
                x_pos, y_pos = section.next()
                doc.add_icon(f"{key}-{i}", res.name, OVERVIEW_ICONS[key], x_pos, y_pos)
            y = section.next_y + 30

        # placeholder link; real peerings are in the topology graph
        if len(vnets) >= 2:
            doc.add_edge("peering-0-1", "VNet Peering", "cell-vnet-0", "cell-vnet-1", "peering")
        return doc
