"""JSON report output."""

from __future__ import annotations

import json
from pathlib import Path

from visage.models.fingerprint import RegressionStatus, RunReport


def generate_json_report(report: RunReport, output_path: Path) -> None:
    """Write a machine-readable JSON report."""
    data = report.model_dump(mode="json")
    data["summary"] = {
        "total": report.total,
        "created": report.count(RegressionStatus.CREATED),
        "passed": report.count(RegressionStatus.PASSED),
        "failed": report.count(RegressionStatus.FAILED),
        "skipped": report.count(RegressionStatus.SKIPPED),
        "errors": len(report.errors),
        "success": report.success,
    }

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(data, f, indent=2, default=str)
