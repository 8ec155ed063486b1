# tests/test_cost.py
"""
Cost analyzer tests: orphan detection, idle/oversized heuristics, storage
tier, total estimate and score bands.
"""

import pytest

import factories as f
from analyzers.cost import analyze_cost, estimate_vm_cost, is_oversized_family
from models import CostAnalysis, CostFinding, Severity
from resources import to_resources


def test_empty_store_scores_100():
    result = analyze_cost([])
    assert result.score == 100
    assert result.findings == ()
    assert result.total_monthly_cost == 0


def test_unreferenced_disk_is_orphaned():
    d1 = f.disk("disk-os", size_gb=128)
    d2 = f.disk("disk-spare", size_gb=256)
    records = [f.vm("vm-app", os_disk_id=d1["id"]), d1, d2]

    result = analyze_cost(to_resources(records))
    orphaned = [x for x in result.findings if x.category == "Orphaned"]

    assert len(orphaned) == 1
    assert orphaned[0].resources == ("disk-spare",)
    assert orphaned[0].current_cost == pytest.approx(256 * 0.12)
    assert orphaned[0].potential_savings == pytest.approx(30.72)


def test_disk_ids_compare_case_insensitively_and_data_disks_count():
    os_disk = f.disk("disk-os")
    data_disk = f.disk("disk-data")
    machine = f.vm("vm-app", os_disk_id=os_disk["id"].upper())
    machine["properties"]["storageProfile"]["dataDisks"] = [{"lun": 0, "managedDisk": {"id": data_disk["id"]}}]
    result = analyze_cost(to_resources([machine, os_disk, data_disk]))
    assert [x for x in result.findings if x.category == "Orphaned"] == []


def test_unreferenced_public_ip_is_orphaned():
    used = f.public_ip("pip-used")
    lb_owned = f.public_ip("pip-lb")
    lb_owned["properties"]["ipConfiguration"] = {"id": "/subscriptions/x/loadBalancers/lb/frontend"}
    spare = f.public_ip("pip-spare")
    records = [f.nic("nic-a", public_ip_id=used["id"]), used, lb_owned, spare]

    orphaned = [x for x in analyze_cost(to_resources(records)).findings if x.category == "Orphaned"]
    assert [x.resource for x in orphaned] == ["pip-spare"]
    assert orphaned[0].severity == Severity.LOW
    assert orphaned[0].potential_savings == pytest.approx(3.65)


def test_idle_and_oversized_vm_estimates():
    result = analyze_cost(to_resources([f.vm("vm-big", size="Standard_D4s_v3"), f.vm("vm-small", size="Standard_B1s")]))
    idle = {x.resource: x for x in result.findings if x.category == "Idle"}
    oversized = [x for x in result.findings if x.category == "Oversized"]

    assert idle["vm-big"].potential_savings == pytest.approx(140 * 0.7)
    assert idle["vm-small"].potential_savings == pytest.approx(7.5 * 0.7)
    assert [x.resource for x in oversized] == ["vm-big"]
    assert oversized[0].potential_savings == pytest.approx(140 * 0.4)


def test_unknown_vm_size_uses_default_cost():
    assert estimate_vm_cost("Standard_M128") == 50.0
    assert is_oversized_family("standard_e2s_v3")
    assert not is_oversized_family("Standard_B2s")


def test_hot_storage_tier_is_flagged():
    result = analyze_cost(to_resources([f.storage("sthot", tier="Hot"), f.storage("stcool")]))
    tier = [x for x in result.findings if x.category == "StorageTier"]
    assert [x.resource for x in tier] == ["sthot"]
    assert tier[0].potential_savings == 25.0


def test_total_cost_estimate():
    records = [
        f.vm("vm-a", size="Standard_B2s"),
        f.storage("sta"),
        f.public_ip("pip-a"),
        f.disk("disk-a", size_gb=100),
        f.simple("nat-a", "Microsoft.Network/natGateways"),
    ]
    result = analyze_cost(to_resources(records))
    assert result.total_monthly_cost == pytest.approx(30 + 50 + 3.65 + 12 + 33)


@pytest.mark.parametrize("savings, expected", [(5, 100), (10, 80), (24.9, 80), (25, 60), (39, 60), (40, 40), (95, 40)])
def test_score_bands(savings, expected):
    finding = CostFinding(Severity.LOW, "Idle", ("vm",), "i", "m", "r", current_cost=0, potential_savings=savings)
    assert CostAnalysis(findings=(finding,), total_monthly_cost=100.0).score == expected


def test_cost_analysis_is_idempotent(scenario):
    assert analyze_cost(scenario) == analyze_cost(scenario)
