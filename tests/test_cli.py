"""Tests for CLI entry point."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from fluxgeom.cli import _default_output, main

SCENE = json.dumps(
    [
        {"primitive": "block", "origin": [0, 0, 0], "dimensions": [1, 1, 1]},
        {"primitive": "sphere", "id": "ball", "origin": [3, 0, 0], "radius": 1},
    ]
)

PARTIAL = json.dumps(
    [
        {"primitive": "sphere", "origin": [0, 0, 0], "radius": 10},
        {"primitive": "sphere", "id": "bad-ball", "origin": [0, 0, 0]},
    ]
)


@pytest.fixture
def scene_file(tmp_path):
    path = tmp_path / "model.flux.json"
    path.write_text(SCENE)
    return path


class TestCLI:
    def test_version_flag(self):
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_build_success(self, scene_file, tmp_path):
        output_file = tmp_path / "out.glb"
        result = CliRunner().invoke(main, ["build", str(scene_file), "-o", str(output_file)])
        assert result.exit_code == 0, result.output
        assert output_file.read_bytes()[:4] == b"glTF"
        assert "Built" in result.output

    def test_build_default_output_path(self, scene_file, tmp_path):
        result = CliRunner().invoke(main, ["build", str(scene_file)])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "model.glb").exists()

    def test_missing_file(self, tmp_path):
        result = CliRunner().invoke(main, ["build", str(tmp_path / "missing.json")])
        assert result.exit_code != 0

    def test_partial_failure_reported(self, tmp_path):
        input_file = tmp_path / "partial.json"
        input_file.write_text(PARTIAL)
        result = CliRunner().invoke(main, ["build", str(input_file)])
        assert result.exit_code == 0
        assert "Invalid primitives" in result.output
        assert "bad-ball" in result.output

    def test_empty_scene_is_error(self, tmp_path):
        input_file = tmp_path / "empty.json"
        input_file.write_text('{"foo": "bar"}')
        result = CliRunner().invoke(main, ["build", str(input_file)])
        assert result.exit_code != 0
        assert "Nothing to export" in result.output

    def test_unparseable_document(self, tmp_path):
        input_file = tmp_path / "bad.json"
        input_file.write_text("{primitive: [")
        result = CliRunner().invoke(main, ["build", str(input_file)])
        assert result.exit_code != 0
        assert "Error" in result.output

    def test_unknown_warning_code(self, scene_file):
        result = CliRunner().invoke(main, ["build", str(scene_file), "--warn-as-error", "W99"])
        assert result.exit_code != 0
        assert "Unknown warning code" in result.output

    def test_brep_without_provider(self, tmp_path):
        input_file = tmp_path / "brep.json"
        input_file.write_text(
            json.dumps(
                [
                    {"primitive": "brep", "content": "abc", "format": "x_b"},
                    {"primitive": "block", "dimensions": [1, 1, 1]},
                ]
            )
        )
        result = CliRunner().invoke(main, ["build", str(input_file), "--suppress-warning", "W03"])
        assert result.exit_code == 0, result.output
        assert "Tessellation provider was not set" in result.output


class TestInspect:
    def test_text(self, scene_file):
        result = CliRunner().invoke(main, ["inspect", str(scene_file)])
        assert result.exit_code == 0, result.output
        assert result.output.startswith("Group")
        assert "'ball'" in result.output
        assert "vertices:" in result.output
        assert "bounds:" in result.output

    def test_json(self, scene_file):
        result = CliRunner().invoke(main, ["inspect", str(scene_file), "--format", "json"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["tree"]["type"] == "Group"
        assert len(payload["tree"]["children"]) == 2
        assert payload["objects"] == ["ball"]
        assert payload["errors"] == {}
        assert payload["bounding_box"]["max"][0] == pytest.approx(4.0, abs=1e-5)

    def test_no_merge(self, tmp_path):
        input_file = tmp_path / "blocks.json"
        block = {"primitive": "block", "dimensions": [1, 1, 1]}
        input_file.write_text(json.dumps([block, block]))
        merged = json.loads(CliRunner().invoke(main, ["inspect", str(input_file), "--format", "json"]).output)
        separate = json.loads(
            CliRunner().invoke(main, ["inspect", str(input_file), "--format", "json", "--no-merge"]).output
        )
        assert len(merged["tree"]["children"]) == 1
        assert len(separate["tree"]["children"]) == 2

    def test_errors_listed(self, tmp_path):
        input_file = tmp_path / "partial.yaml"
        input_file.write_text(PARTIAL)
        result = CliRunner().invoke(main, ["inspect", str(input_file)])
        assert "error: sphere (bad-ball: sphere is missing required field 'radius')" in result.output

    def test_empty(self, tmp_path):
        input_file = tmp_path / "empty.json"
        input_file.write_text("[]")
        result = CliRunner().invoke(main, ["inspect", str(input_file)])
        assert result.exit_code == 0
        assert "(empty scene)" in result.output


class TestDefaultOutput:
    @pytest.mark.parametrize(
        "name,expected",
        [("a.flux.json", "a.glb"), ("a.json", "a.glb"), ("a.yml", "a.glb"), ("a.txt", "a.txt.glb")],
    )
    def test_suffixes(self, tmp_path, name, expected):
        assert _default_output(tmp_path / name) == tmp_path / expected
