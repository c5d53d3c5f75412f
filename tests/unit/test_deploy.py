"""Unit tests for deploy.py, the Automation API driver."""

from unittest.mock import MagicMock

import pytest
from pulumi import automation as auto

import deploy


@pytest.fixture
def stack(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    stack = MagicMock()
    stack.name = "dev"
    create_or_select = MagicMock(return_value=stack)
    monkeypatch.setattr(deploy.auto, "create_or_select_stack", create_or_select)
    stack.create_or_select = create_or_select
    return stack


def test_overrides_only_include_set_variables() -> None:
    overrides = deploy.config_overrides_from_env({"DESIRED_COUNT": "3", "CONTAINER_IMAGE": "repo/web:v2", "OTHER": "x"})

    assert set(overrides) == {"desired_count", "image"}
    assert overrides["desired_count"].value == "3"
    assert overrides["image"].value == "repo/web:v2"
    assert overrides["image"].secret is False


def test_empty_values_are_ignored() -> None:
    assert deploy.config_overrides_from_env({"AZ_COUNT": ""}) == {}


def test_select_stack_uses_inline_program(stack: MagicMock) -> None:
    deploy.select_stack("staging", environ={})

    kwargs = stack.create_or_select.call_args.kwargs
    assert kwargs["stack_name"] == "staging"
    assert kwargs["project_name"] == deploy.PROJECT_NAME
    assert kwargs["program"] is deploy.create_pulumi_program
    stack.set_all_config.assert_not_called()
    stack.set_config.assert_not_called()


def test_select_stack_applies_environment(stack: MagicMock) -> None:
    deploy.select_stack(environ={"PULUMI_STACK_NAME": "prod", "AWS_DEFAULT_REGION": "eu-west-2", "AZ_COUNT": "3"})

    assert stack.create_or_select.call_args.kwargs["stack_name"] == "prod"
    region_key, region_value = stack.set_config.call_args.args
    assert region_key == "aws:region"
    assert region_value.value == "eu-west-2"
    applied = stack.set_all_config.call_args.args[0]
    assert applied["az_count"].value == "3"


def test_up_returns_plain_outputs(stack: MagicMock) -> None:
    stack.up.return_value.outputs = {
        "load_balancer_dns_name": auto.OutputValue(value="alb.example.com", secret=False),
    }

    outputs = deploy.up(environ={})

    assert outputs == {"load_balancer_dns_name": "alb.example.com"}


def test_up_reraises_failures(stack: MagicMock) -> None:
    stack.up.side_effect = RuntimeError("boom")
    with pytest.raises(RuntimeError, match="boom"):
        deploy.up(environ={})


def test_stack_outputs_for_missing_stack(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(deploy.auto, "select_stack", MagicMock(side_effect=auto.StackNotFoundError("missing")))
    assert deploy.stack_outputs("nope") == {}


def test_preview_returns_change_summary(stack: MagicMock) -> None:
    stack.preview.return_value.change_summary = {"create": 24}

    assert deploy.preview("staging", environ={}) == {"create": 24}
    assert stack.create_or_select.call_args.kwargs["stack_name"] == "staging"
    stack.preview.assert_called_once()


def test_destroy_runs_on_selected_stack(stack: MagicMock) -> None:
    deploy.destroy("staging", environ={})

    assert stack.create_or_select.call_args.kwargs["stack_name"] == "staging"
    stack.destroy.assert_called_once()
    stack.up.assert_not_called()


def test_destroy_reraises_failures(stack: MagicMock) -> None:
    stack.destroy.side_effect = RuntimeError("boom")
    with pytest.raises(RuntimeError, match="boom"):
        deploy.destroy(environ={})
