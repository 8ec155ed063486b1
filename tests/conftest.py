# tests/conftest.py
import boto3
import pytest

import factories as f
from config import Settings
from resources import to_resources


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so botocore never looks for real ones."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def aws_session(aws_credentials):
    return boto3.Session(region_name="us-east-1")


@pytest.fixture
def settings(tmp_path, monkeypatch):
    for var in ("AZDOC_INPUT", "AZDOC_OUT", "AZDOC_ENABLE_AI", "AZDOC_REQUIRED_TAGS"):
        monkeypatch.delenv(var, raising=False)
    return Settings(input_path=str(tmp_path / "inventory.json"), out_dir=str(tmp_path / "docs"),
                    enable_ai=False, subscription="Contoso Dev")


@pytest.fixture
def scenario_records():
    """One VNet with two subnets, one NSG, one VM with one NIC."""
    mgmt_subnet = f.subnet_id("vnet-hub", "subnet-management")
    nic = f.nic("jumpbox-nic", subnet=mgmt_subnet)
    return [
        f.vnet("vnet-hub", subnets=["subnet-management", "subnet-data"]),
        f.nsg("nsg-mgmt", rules=[f.nsg_rule("allow-ssh", "22")]),
        f.vm("jumpbox-vm", nic_ids=[nic["id"]]),
        nic,
    ]


@pytest.fixture
def scenario(scenario_records):
    return to_resources(scenario_records)
