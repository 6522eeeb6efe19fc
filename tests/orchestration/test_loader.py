"""Tests for the JSON definition loader."""

import json

import pytest
from pydantic import ValidationError

from orchestration.agent import Agent
from orchestration.exceptions import StepValidationError
from orchestration.loader import load_agent_config, load_agent_file, load_workflow_config, load_workflow_file
from orchestration.step import StepType, Step


def lookup_order(params, context):
    return {"order": params}


AGENT_DOCUMENT = {
    "id": "support-agent",
    "name": "Support Agent",
    "model": {
        "provider": "openrouter",
        "model": "mistralai/mistral-7b-instruct:free",
        "fallbackModels": ["backup/model"],
    },
    "systemPrompt": "You help customers.",
    "maxTokens": 512,
    "tools": [{"name": "lookup_order", "description": "Find an order"}],
    "retryConfig": {"maxAttempts": 5, "backoffMs": 250},
    "timeoutMs": 15000,
}

WORKFLOW_DOCUMENT = {
    "id": "support",
    "name": "Support",
    "steps": [
        {
            "id": "triage",
            "name": "Triage",
            "type": "condition",
            "condition": "is_vip",
            "onSuccess": "vip",
            "steps": [{"id": "vip", "type": "agent", "agentId": "support-agent"}],
        },
        {"id": "lookup", "type": "tool", "toolName": "lookup_order", "onFailure": "apologize"},
        {"id": "apologize", "type": "agent", "agent_id": "support-agent"},
    ],
}


def test_load_agent_config_from_camel_case():
    config = load_agent_config(AGENT_DOCUMENT, tools={"lookup_order": lookup_order})

    assert config.id == "support-agent"
    assert config.system_prompt == "You help customers."
    assert config.max_tokens == 512
    assert config.temperature == 0.7
    assert config.timeout_ms == 15000
    assert config.retry.max_attempts == 5
    assert config.retry.backoff_ms == 250
    assert config.model.provider == "openrouter"
    assert config.model.fallback_models == ["backup/model"]
    assert config.tools[0].name == "lookup_order"
    assert config.tools[0].handler is lookup_order
    assert config.tools[0].description == "Find an order"


def test_load_agent_config_accepts_snake_case_and_tool_names():
    config = load_agent_config(
        {"id": "a", "name": "A", "system_prompt": "Hi", "tools": ["lookup_order"]},
        tools={"lookup_order": lookup_order},
    )

    assert config.system_prompt == "Hi"
    assert config.model is None
    assert [tool.name for tool in config.tools] == ["lookup_order"]


def test_load_agent_config_unknown_tool():
    with pytest.raises(StepValidationError, match="lookup_order"):
        load_agent_config(AGENT_DOCUMENT)


def test_load_agent_config_rejects_malformed_documents():
    with pytest.raises(ValidationError):
        load_agent_config({"id": "a"})
    with pytest.raises(ValidationError):
        load_agent_config({"id": "a", "name": "A", "maxTokens": 0})


def test_load_workflow_config_binds_conditions():
    def is_vip(context):
        return context.variables.get("vip", False)

    config = load_workflow_config(WORKFLOW_DOCUMENT, conditions={"is_vip": is_vip})

    triage, lookup, apologize = config.steps
    assert triage.type == "condition"
    assert triage.condition is is_vip
    assert triage.on_success == "vip"
    assert triage.steps[0].agent_id == "support-agent"
    assert lookup.tool_name == "lookup_order"
    assert lookup.on_failure == "apologize"
    assert apologize.agent_id == "support-agent"
    assert config.parallel is False
    assert Step(triage).type is StepType.CONDITION


def test_load_workflow_config_unknown_condition_and_type():
    with pytest.raises(StepValidationError, match="is_vip"):
        load_workflow_config(WORKFLOW_DOCUMENT)

    with pytest.raises(ValidationError):
        load_workflow_config({"id": "w", "name": "W", "steps": [{"id": "s", "type": "teleport"}]})


def test_load_definition_files(tmp_path):
    agent_path = tmp_path / "agent.json"
    workflow_path = tmp_path / "workflow.json"
    agent_path.write_text(json.dumps(AGENT_DOCUMENT), encoding="utf-8")
    workflow_path.write_text(
        json.dumps({"id": "w", "name": "W", "parallel": True, "steps": [{"id": "s", "type": "agent", "agentId": "a"}]}),
        encoding="utf-8",
    )

    agent = load_agent_file(agent_path, tools={"lookup_order": lookup_order})
    workflow = load_workflow_file(workflow_path)

    assert agent.name == "Support Agent"
    assert workflow.parallel is True
    assert workflow.steps[0].agent_id == "a"


def test_callable_provider_kind_is_rejected_for_documents():
    document = {**AGENT_DOCUMENT, "tools": [], "model": {"provider": "callable", "model": "in-process"}}
    config = load_agent_config(document)

    with pytest.raises(ValueError, match="CallableProvider"):
        Agent(config)
