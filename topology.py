# topology.py
"""
Topology builder: network resources -> node/edge graph.

Unlike the diagram renderer, which places resources by naming convention,
the graph is derived from the ARM id references the resources carry
(subnet associations, NIC attachments, peerings). IDs are compared
case-insensitively and edges whose endpoints are not nodes are dropped.
"""

import json
import os
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Sequence

from exceptions import ArtifactWriteError
from resources import (
    LOAD_BALANCER,
    NAT_GATEWAY,
    NETWORK_INTERFACE,
    NSG,
    PUBLIC_IP,
    ROUTE_TABLE,
    VIRTUAL_MACHINE,
    VIRTUAL_NETWORK,
    Resource,
    get_path,
)

NODE_KINDS = {
    VIRTUAL_NETWORK: "vnet",
    NSG: "nsg",
    ROUTE_TABLE: "routetable",
    NAT_GATEWAY: "natgateway",
    LOAD_BALANCER: "loadbalancer",
    PUBLIC_IP: "publicip",
    NETWORK_INTERFACE: "nic",
    VIRTUAL_MACHINE: "vm",
}


@dataclass
class Node:
    id: str
    type: str
    name: str
    data: Dict[str, str] = field(default_factory=dict)


@dataclass
class Edge:
    source: str
    target: str
    type: str


@dataclass
class Topology:
    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)

    def node_ids(self) -> Dict[str, Node]:
        return {n.id: n for n in self.nodes}

    def nodes_of_type(self, node_type: str) -> List[Node]:
        return [n for n in self.nodes if n.type == node_type]

    def edges_of_type(self, edge_type: str) -> List[Edge]:
        return [e for e in self.edges if e.type == edge_type]

    def to_dict(self) -> dict:
        return {"nodes": [asdict(n) for n in self.nodes], "edges": [asdict(e) for e in self.edges]}

    def save(self, path: str) -> str:
        try:
            os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
            with open(path, "w", encoding="utf-8") as fh:
                json.dump(self.to_dict(), fh, indent=2)
        except OSError as e:
            raise ArtifactWriteError(path, e) from e
        return path


def _ref_id(value) -> Optional[str]:
    """Lower-cased id of an ARM reference object ({"id": ...})."""
    if isinstance(value, dict) and isinstance(value.get("id"), str) and value["id"]:
        return value["id"].lower()
    return None


class TopologyBuilder:
    """Builds a Topology from one Resource Store snapshot."""

    def __init__(self, resources: Sequence[Resource]):
        self.resources = list(resources)

    def build(self) -> Topology:
        topo = Topology()
        pending: List[Edge] = []

        for res in self.resources:
            kind = NODE_KINDS.get(res.type)
            if kind is None or not res.id:
                continue
            topo.nodes.append(Node(id=res.id.lower(), type=kind, name=res.name,
                                   data={"resourceGroup": res.resource_group}))
            if kind == "vnet":
                pending.extend(self._vnet_edges(res, topo))
            elif kind == "nic":
                pending.extend(self._nic_edges(res))
            elif kind == "vm":
                pending.extend(self._vm_edges(res))

        known = topo.node_ids()
        seen = set()
        for edge in pending:
            key = (edge.source, edge.target, edge.type)
            if edge.source in known and edge.target in known and key not in seen:
                seen.add(key)
                topo.edges.append(edge)
        return topo

    def _vnet_edges(self, vnet: Resource, topo: Topology) -> List[Edge]:
        edges: List[Edge] = []
        vnet_id = vnet.id.lower()
        for subnet in vnet.get_list("properties", "subnets"):
            if not isinstance(subnet, dict) or not isinstance(subnet.get("name"), str):
                continue
            subnet_id = subnet.get("id") if isinstance(subnet.get("id"), str) else \
                f"{vnet.id}/subnets/{subnet['name']}"
            subnet_id = subnet_id.lower()
            prefix = get_path(subnet, "properties", "addressPrefix")
            topo.nodes.append(Node(id=subnet_id, type="subnet", name=subnet["name"],
                                   data={"addressPrefix": prefix if isinstance(prefix, str) else ""}))
            edges.append(Edge(vnet_id, subnet_id, "contains"))
            props = subnet.get("properties") if isinstance(subnet.get("properties"), dict) else {}
            for key, edge_type in (("networkSecurityGroup", "secures"),
                                   ("routeTable", "routes"),
                                   ("natGateway", "natgw")):
                ref = _ref_id(props.get(key))
                if ref:
                    edges.append(Edge(ref, subnet_id, edge_type))
        for peering in vnet.get_list("properties", "virtualNetworkPeerings"):
            remote = _ref_id(get_path(peering, "properties", "remoteVirtualNetwork"))
            if remote:
                edges.append(Edge(vnet_id, remote, "peering"))
        return edges

    def _nic_edges(self, nic: Resource) -> List[Edge]:
        edges: List[Edge] = []
        nic_id = nic.id.lower()
        for ip_config in nic.get_list("properties", "ipConfigurations"):
            subnet = _ref_id(get_path(ip_config, "properties", "subnet"))
            if subnet:
                edges.append(Edge(nic_id, subnet, "member"))
            pip = _ref_id(get_path(ip_config, "properties", "publicIPAddress"))
            if pip:
                edges.append(Edge(pip, nic_id, "public-ip"))
        return edges

    def _vm_edges(self, vm: Resource) -> List[Edge]:
        edges: List[Edge] = []
        for ref in vm.get_list("properties", "networkProfile", "networkInterfaces"):
            nic = _ref_id(ref)
            if nic:
                edges.append(Edge(nic, vm.id.lower(), "attached"))
        return edges


def build_topology(resources: Sequence[Resource]) -> Topology:
    return TopologyBuilder(resources).build()
