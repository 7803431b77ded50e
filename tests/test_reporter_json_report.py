"""Tests for JSON report generation."""

import json
from pathlib import Path

from visage.baseline.comparator import compare, skip
from visage.models.fingerprint import RunReport, StoryError
from visage.reporter.json_report import generate_json_report


def _make_report(results=None, errors=None) -> RunReport:
    return RunReport(
        run_id="run_0001",
        started_at="2025-01-01T00:00:00Z",
        completed_at="2025-01-01T00:01:00Z",
        base_url="http://localhost:6006",
        project_root="/project",
        duration_seconds=60.0,
        results=results or [],
        errors=errors or [],
    )


class TestGenerateJsonReport:
    """Tests for generate_json_report function."""

    def test_generate_basic_report(self, tmp_path: Path):
        output_file = tmp_path / "reports" / "report.json"
        generate_json_report(_make_report(), output_file)

        data = json.loads(output_file.read_text())
        assert data["run_id"] == "run_0001"
        assert data["summary"]["total"] == 0
        assert data["summary"]["success"] is True

    def test_summary_counts(self, tmp_path: Path, story, fingerprint):
        failed_baseline = fingerprint.model_copy(update={"visual_hash": "0" * 64})
        results = [
            compare(story, fingerprint, None),
            compare(story, fingerprint, fingerprint),
            compare(story, fingerprint, failed_baseline),
            skip(story),
        ]
        errors = [StoryError(story_id="atoms-x--y", component_name="X", story_name="Y",
                             kind="timeout", message="timed out after 30s")]
        output_file = tmp_path / "report.json"
        generate_json_report(_make_report(results, errors), output_file)

        summary = json.loads(output_file.read_text())["summary"]
        assert summary == {
            "total": 5, "created": 1, "passed": 1, "failed": 1,
            "skipped": 1, "errors": 1, "success": False,
        }

    def test_result_fields_are_serialized(self, tmp_path: Path, story, fingerprint):
        output_file = tmp_path / "report.json"
        generate_json_report(_make_report([compare(story, fingerprint, None)]), output_file)

        result = json.loads(output_file.read_text())["results"][0]
        assert result["status"] == "created"
        assert result["story_id"] == story.story_id
        assert result["current"]["visual_hash"] == fingerprint.visual_hash
        assert result["baseline"]["visual_hash"] == fingerprint.visual_hash
