# tests/test_config.py
import pytest

from config import DEFAULT_BEDROCK_MODEL_ID, DEFAULT_REQUIRED_TAGS, Settings
from main import parse_args, settings_from_args

ENV_VARS = ("AZDOC_INPUT", "AZDOC_OUT", "AZDOC_ENABLE_AI", "AZDOC_REQUIRED_TAGS", "AWS_REGION", "BEDROCK_MODEL_ID")


@pytest.fixture
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = Settings.from_env()
    assert settings.input_path == "./data/raw/all-resources.json"
    assert settings.out_dir == "./docs"
    assert settings.md_name == "SUBSCRIPTION.md"
    assert settings.enable_ai is False
    assert settings.region == "us-east-1"
    assert settings.model_id == DEFAULT_BEDROCK_MODEL_ID
    assert settings.required_tags == DEFAULT_REQUIRED_TAGS
    assert settings.required_tags is not DEFAULT_REQUIRED_TAGS
    settings.validate()


def test_environment_overrides(clean_env):
    clean_env.setenv("AZDOC_INPUT", "/data/inv.json")
    clean_env.setenv("AZDOC_OUT", "/srv/docs")
    clean_env.setenv("AZDOC_ENABLE_AI", "TRUE")
    clean_env.setenv("AZDOC_REQUIRED_TAGS", "owner, team,,")
    clean_env.setenv("AWS_REGION", "eu-west-1")

    settings = Settings.from_env()
    assert settings.input_path == "/data/inv.json"
    assert settings.diagrams_dir.replace("\\", "/") == "/srv/docs/diagrams"
    assert settings.enable_ai is True
    assert settings.required_tags == ["owner", "team"]
    assert settings.region == "eu-west-1"


@pytest.mark.parametrize("overrides,message", [
    ({"input_path": ""}, "input"),
    ({"md_name": "doc.txt"}, ".md"),
    ({"required_tags": []}, "required tag"),
    ({"enable_ai": True, "model_id": ""}, "BEDROCK_MODEL_ID"),
])
def test_validate_rejects(clean_env, overrides, message):
    settings = Settings(**overrides)
    with pytest.raises(ValueError, match=message):
        settings.validate()


def test_cli_flags_override_environment(clean_env):
    clean_env.setenv("AZDOC_OUT", "/srv/docs")
    args = parse_args(["build", "--out", "out", "--required-tags", "a, b", "--enable-ai",
                       "--no-diagrams", "--subscription", "Prod"])
    settings = settings_from_args(args)
    assert settings.out_dir == "out"
    assert settings.required_tags == ["a", "b"]
    assert settings.enable_ai is True
    assert settings.with_diagrams is False
    assert settings.subscription == "Prod"
    assert settings.md_name == "SUBSCRIPTION.md"
