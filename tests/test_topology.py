# tests/test_topology.py
import json

import pytest

import factories as f
from exceptions import ArtifactWriteError
from resources import to_resources
from topology import build_topology


def hub_and_spoke():
    nsg = f.nsg("nsg-app")
    rt = f.simple("rt-app", "Microsoft.Network/routeTables")
    spoke = f.vnet("vnet-spoke", subnets=["apps"], rg="rg-spoke")
    hub = f.vnet(
        "vnet-hub",
        subnets=[("apps", {"networkSecurityGroup": {"id": nsg["id"].upper()}, "routeTable": {"id": rt["id"]}})],
        peer_ids=[spoke["id"], "/subscriptions/x/virtualNetworks/gone"],
    )
    pip = f.public_ip("pip-app")
    nic = f.nic("nic-app", subnet=f.subnet_id("vnet-hub", "apps"), public_ip_id=pip["id"])
    machine = f.vm("vm-app", nic_ids=[nic["id"]])
    return [hub, spoke, nsg, rt, pip, nic, machine]


def edge_set(topo):
    names = {n.id: n.name for n in topo.nodes}
    return {(names[e.source], names[e.target], e.type) for e in topo.edges}


def test_nodes_and_edges_from_id_references():
    topo = build_topology(to_resources(hub_and_spoke()))

    assert len(topo.nodes_of_type("subnet")) == 2
    assert len(topo.nodes_of_type("vnet")) == 2
    assert edge_set(topo) == {
        ("vnet-hub", "apps", "contains"),
        ("vnet-spoke", "apps", "contains"),
        ("nsg-app", "apps", "secures"),
        ("rt-app", "apps", "routes"),
        ("vnet-hub", "vnet-spoke", "peering"),
        ("nic-app", "apps", "member"),
        ("pip-app", "nic-app", "public-ip"),
        ("nic-app", "vm-app", "attached"),
    }


def test_dangling_references_are_dropped():
    topo = build_topology(to_resources(hub_and_spoke()))
    known = topo.node_ids()
    assert all(e.source in known and e.target in known for e in topo.edges)
    assert len(topo.edges_of_type("peering")) == 1


def test_empty_and_malformed_inputs():
    assert build_topology([]).nodes == []
    broken = {"id": "/x/vnet", "name": "vnet", "type": "Microsoft.Network/virtualNetworks",
              "properties": {"subnets": "nope"}}
    topo = build_topology(to_resources([broken]))
    assert [n.type for n in topo.nodes] == ["vnet"]
    assert topo.edges == []


def test_save_writes_json(tmp_path):
    path = build_topology(to_resources(hub_and_spoke())).save(str(tmp_path / "graph.json"))
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    assert set(data) == {"nodes", "edges"}
    assert len(data["edges"]) == 8


def test_save_failure_names_the_artifact(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    with pytest.raises(ArtifactWriteError) as exc:
        build_topology([]).save(str(blocker / "graph.json"))
    assert exc.value.artifact.endswith("graph.json")
