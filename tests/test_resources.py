# tests/test_resources.py
"""
Resource Store tests: schema-on-read accessors and inventory loading.
"""

import json

import pytest

import factories as f
from exceptions import InputError
from resources import (
    MISSING,
    Resource,
    count_by_type,
    filter_by_resource_group,
    filter_by_type,
    get_path,
    group_by_resource_group,
    load_resources,
    to_resources,
)


def test_get_path_degrades_to_missing():
    data = {"a": {"b": [{"c": 1}]}, "s": "text"}
    assert get_path(data, "a", "b", 0, "c") == 1
    assert get_path(data, "a", "x") is MISSING
    assert get_path(data, "a", "b", 5) is MISSING
    assert get_path(data, "s", "c") is MISSING
    assert get_path(data, "a", "b", "c") is MISSING
    assert not MISSING


def test_resource_accessors_tolerate_bad_shapes():
    res = Resource({"name": 5, "type": "Microsoft.Compute/VirtualMachines", "tags": ["x"], "properties": "oops"})
    assert res.name == ""
    assert res.type == "microsoft.compute/virtualmachines"
    assert res.tags == {}
    assert res.properties is None
    assert res.get_list("properties", "x") == []
    assert res.get_number("properties", "size", default=7.0) == 7.0
    assert res.get_str("sku", "name", default="none") == "none"


def test_tags_are_stringified():
    res = Resource({"tags": {"count": 3, "env": "prod"}})
    assert res.tags == {"count": "3", "env": "prod"}
    assert res.has_tags_field


def test_sku_property():
    assert Resource(f.storage("st", sku="Standard_LRS")).sku == "Standard_LRS"
    assert Resource({}).sku == ""


def test_filters_and_counts():
    resources = to_resources([f.vm("vm-a"), f.vm("vm-b", rg="rg-spoke"), f.storage("st"), "junk", None])
    assert len(resources) == 3
    assert [r.name for r in filter_by_type(resources, "Microsoft.Compute/virtualMachines")] == ["vm-a", "vm-b"]
    assert [r.name for r in filter_by_resource_group(resources, "rg-spoke")] == ["vm-b"]
    assert set(group_by_resource_group(resources)) == {"rg-hub", "rg-spoke"}
    assert count_by_type(resources) == {
        "microsoft.compute/virtualmachines": 2,
        "microsoft.storage/storageaccounts": 1,
    }


def test_load_resources_accepts_list_and_wrapped_object(tmp_path):
    as_list = tmp_path / "list.json"
    as_list.write_text(json.dumps([f.vm("vm-a")]), encoding="utf-8")
    wrapped = tmp_path / "wrapped.json"
    wrapped.write_text(json.dumps({"resources": [f.vm("vm-a"), f.storage("st")]}), encoding="utf-8")

    assert [r.name for r in load_resources(str(as_list))] == ["vm-a"]
    assert len(load_resources(str(wrapped))) == 2


def test_load_resources_errors(tmp_path):
    with pytest.raises(InputError, match="not found"):
        load_resources(str(tmp_path / "missing.json"))

    broken = tmp_path / "broken.json"
    broken.write_text("[{", encoding="utf-8")
    with pytest.raises(InputError, match="line 1"):
        load_resources(str(broken))

    scalar = tmp_path / "scalar.json"
    scalar.write_text('{"count": 3}', encoding="utf-8")
    with pytest.raises(InputError, match="not a list"):
        load_resources(str(scalar))
