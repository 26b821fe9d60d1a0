"""Tests for YAML workflow loading and structural validation."""

import pytest

from csbot.bof import BOFArgument
from csbot.errors import ValidationError
from csbot.workflow import list_workflows, load_workflow, validate_workflow

RECON = {
    "name": "recon",
    "description": "Basic host recon",
    "beacon_id": "1234567",
    "parallel": True,
    "actions": [
        {
            "name": "whoami",
            "type": "shell",
            "parameters": {"command": "whoami /all"},
            "timeout_seconds": 60,
            "on_success": [
                {
                    "name": "dir",
                    "type": "bof",
                    "parameters": {
                        "file": "dir.x64.o",
                        "arguments": [
                            {"type": "Z", "value": "C:\\Windows"},
                            {"type": "i", "value": 12112},
                        ],
                    },
                    "conditions": [
                        {"source": "whoami.output", "operator": "contains", "value": "admin"}
                    ],
                }
            ],
            "on_failure": [{"name": "ps", "type": "ps"}],
        }
    ],
}


class TestLoadWorkflow:
    def test_load_full_workflow(self, write_workflow):
        workflow = load_workflow(write_workflow(RECON))

        assert workflow.name == "recon"
        assert workflow.parallel is True
        assert workflow.beacon_id == "1234567"
        whoami = workflow.actions[0]
        assert whoami.timeout_seconds == 60.0
        assert whoami.parameters["command"] == "whoami /all"
        dir_action = whoami.on_success[0]
        assert dir_action.is_bof
        assert dir_action.parameters["arguments"] == (
            BOFArgument("Z", "C:\\Windows"),
            BOFArgument("i", 12112),
        )
        assert dir_action.conditions[0].operator == "contains"
        assert whoami.on_failure[0].parameters == {}

    def test_numeric_beacon_id_becomes_string(self, write_workflow):
        data = {**RECON, "beacon_id": 1234}
        assert load_workflow(write_workflow(data)).beacon_id == "1234"

    def test_loaded_workflow_is_immutable(self, write_workflow):
        workflow = load_workflow(write_workflow(RECON))
        with pytest.raises(TypeError):
            workflow.actions[0].parameters["command"] = "rm"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_workflow(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("name: [unclosed")
        with pytest.raises(ValidationError, match="Invalid YAML"):
            load_workflow(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValidationError, match="mapping"):
            load_workflow(path)

    def test_structural_errors_are_reported(self, write_workflow):
        with pytest.raises(ValidationError) as exc_info:
            load_workflow(write_workflow({"name": "x", "actions": [{"type": "shell"}]}))
        assert "missing required field 'name'" in exc_info.value.message
        assert exc_info.value.details["errors"]

    def test_to_dict_is_valid_workflow_data(self, write_workflow):
        data = load_workflow(write_workflow(RECON)).to_dict()
        assert validate_workflow(data) == []
        assert data["actions"][0]["on_success"][0]["parameters"]["arguments"][1] == {
            "type": "i",
            "value": 12112,
        }

    def test_error_serializes(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n")
        with pytest.raises(ValidationError) as exc_info:
            load_workflow(path)
        assert exc_info.value.to_dict()["error"] == "VALIDATION"
        assert exc_info.value.to_dict()["details"] == {"path": str(path)}

    def test_unknown_operator_still_loads(self, write_workflow):
        data = {
            "name": "x",
            "actions": [
                {
                    "name": "a",
                    "type": "shell",
                    "conditions": [{"source": "b", "operator": "roughly", "value": 1}],
                }
            ],
        }
        workflow = load_workflow(write_workflow(data))
        assert workflow.actions[0].conditions[0].operator == "roughly"


class TestValidateWorkflow:
    def test_valid(self):
        assert validate_workflow(RECON) == []

    def test_missing_top_level_fields(self):
        errors = validate_workflow({})
        assert "Missing required field: name" in errors
        assert "Missing required field: actions" in errors

    def test_empty_actions(self):
        assert validate_workflow({"name": "x", "actions": []}) == [
            "Workflow must have at least one action"
        ]

    def test_wrong_types(self):
        errors = validate_workflow({"name": "x", "parallel": "yes", "actions": "shell"})
        assert "Field 'parallel' must be a boolean" in errors
        assert "Field 'actions' must be a list" in errors

    def test_bad_bof_argument_type(self):
        data = {
            "name": "x",
            "actions": [
                {
                    "name": "b",
                    "type": "bof",
                    "parameters": {"arguments": [{"type": "q", "value": 1}]},
                }
            ],
        }
        errors = validate_workflow(data)
        assert errors == ["Action 'b' parameter 'arguments': BOF argument 1: unsupported type 'q'"]

    def test_list_parameter_outside_bof_arguments(self):
        data = {
            "name": "x",
            "actions": [
                {"name": "s", "type": "shell", "parameters": {"targets": []}},
                {"name": "b", "type": "bof", "parameters": {"arguments": []}},
            ],
        }
        assert validate_workflow(data) == [
            "Action 's': parameter 'targets' is a list; only BOF actions take a list, "
            "as 'arguments'"
        ]

    def test_condition_requires_value(self):
        data = {
            "name": "x",
            "actions": [
                {
                    "name": "a",
                    "type": "shell",
                    "conditions": [
                        {"source": "b", "operator": "equals"},
                        {"source": "b", "operator": "not_empty"},
                    ],
                }
            ],
        }
        assert validate_workflow(data) == ["Action 'a': condition 1 missing 'value'"]

    def test_nested_errors_use_branch_prefix(self):
        data = {
            "name": "x",
            "actions": [{"name": "a", "type": "shell", "on_failure": [{"name": "b"}]}],
        }
        assert validate_workflow(data) == ["Action 'b': missing required field 'type'"]

    def test_bad_timeout(self):
        data = {"name": "x", "actions": [{"name": "a", "type": "shell", "timeout_seconds": 0}]}
        assert validate_workflow(data) == ["Action 'a': timeout_seconds must be a positive number"]

    def test_depth_limit(self):
        action = {"name": "leaf", "type": "shell"}
        for i in range(4):
            action = {"name": f"n{i}", "type": "shell", "on_success": [action]}
        errors = validate_workflow({"name": "x", "actions": [action]}, max_depth=2)
        assert any("nested deeper than 2 levels" in e for e in errors)


class TestListWorkflows:
    def test_lists_yaml_and_yml(self, tmp_path, write_workflow):
        write_workflow(RECON, "recon.yaml")
        write_workflow({"name": "alpha", "actions": []}, "alpha.yml")
        (tmp_path / "notes.txt").write_text("ignored")
        (tmp_path / "broken.yaml").write_text("name: [")

        workflows = list_workflows(tmp_path)

        assert [w["name"] for w in workflows] == ["alpha", "recon"]
        assert workflows[1]["actions"] == 1
        assert workflows[1]["parallel"] is True

    def test_missing_directory(self, tmp_path):
        assert list_workflows(tmp_path / "missing") == []
