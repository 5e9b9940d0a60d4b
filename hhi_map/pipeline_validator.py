# hhi_map/pipeline_validator.py
"""
Data quality checkpoints between pipeline stages.
Tracks unit counts so dropped tracts (unrecognized levels, missing geometry) are visible.
"""

from __future__ import annotations

import logging

import polars as pl

logger = logging.getLogger(__name__)


class PipelineValidator:
    """Track tables through pipeline stages"""

    def __init__(self, key_col: str = "GEOID") -> None:
        self.key_col = key_col
        self.checkpoints: dict[str, dict[str, object]] = {}

    def checkpoint(
        self,
        step_name: str,
        df: pl.DataFrame,
        required_cols: list[str] | None = None,
        unique_key: bool = True,
    ) -> dict[str, object]:
        """Validate a table at a pipeline checkpoint."""
        issues: list[str] = []
        warnings: list[str] = []
        report: dict[str, object] = {
            "step": step_name,
            "status": "PASS",
            "rows": df.height,
            "columns": len(df.columns),
            "issues": issues,
            "warnings": warnings,
        }

        required = [self.key_col, *(required_cols or [])]
        missing = [c for c in required if c not in df.columns]
        if missing:
            issues.append(f"Missing required columns: {missing}")

        if self.key_col in df.columns:
            null_keys = df[self.key_col].null_count()
            if null_keys:
                issues.append(f"{self.key_col}: {null_keys:,} nulls")
            if unique_key:
                duplicates = df.height - df[self.key_col].n_unique()
                if duplicates:
                    issues.append(f"Found {duplicates:,} duplicate {self.key_col} rows")

        if df.height == 0:
            warnings.append("Table is empty")

        if issues:
            report["status"] = "FAIL"

        self.checkpoints[step_name] = report

        if report["status"] == "FAIL":
            logger.error(f"❌ {step_name}: FAILED validation")
            for issue in issues:
                logger.error(f"  - {issue}")
        else:
            logger.info(f"✅ {step_name}: {df.height:,} rows, {len(df.columns)} cols")

        for warning in warnings:
            logger.warning(f"  ⚠️  {warning}")

        return report

    @property
    def failed(self) -> list[str]:
        return [name for name, r in self.checkpoints.items() if r["status"] == "FAIL"]

    def compare_checkpoints(self, step1: str, step2: str) -> dict[str, object]:
        """Compare two checkpoints to report row loss"""
        if step1 not in self.checkpoints or step2 not in self.checkpoints:
            return {"status": "ERROR", "message": "Checkpoint not found"}

        rows1 = int(self.checkpoints[step1]["rows"])  # type: ignore[call-overload]
        rows2 = int(self.checkpoints[step2]["rows"])  # type: ignore[call-overload]

        row_change = rows2 - rows1
        row_pct = 100 * row_change / rows1 if rows1 > 0 else 0.0

        report: dict[str, object] = {
            "from": step1,
            "to": step2,
            "row_change": row_change,
            "row_change_pct": row_pct,
            "status": "OK",
        }

        if abs(row_pct) > 10:
            report["status"] = "WARNING"
            report["message"] = f"Rows changed by {row_pct:.1f}%"

        logger.info(f"📊 {step1} → {step2}: {row_change:+,} rows ({row_pct:+.1f}%)")
        if report["status"] == "WARNING":
            logger.warning(f"  ⚠️  {step1} → {step2}: {report['message']}")

        return report

    def summary(self) -> None:
        """Log one line per checkpoint, then its issues and warnings"""
        logger.info("=" * 60)
        logger.info("PIPELINE VALIDATION SUMMARY")
        for step_name, report in self.checkpoints.items():
            status_icon = "✅" if report["status"] == "PASS" else "❌"
            logger.info(f"{status_icon} {step_name}: {report['rows']:,} rows, {report['columns']} cols")
            for issue in report["issues"]:  # type: ignore[attr-defined]
                logger.error(f"    ❌ {issue}")
            for warning in report["warnings"]:  # type: ignore[attr-defined]
                logger.warning(f"    ⚠️  {warning}")
        logger.info("=" * 60)
