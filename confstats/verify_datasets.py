"""
confstats.verify_datasets — CLI for dataset integrity verification.

Usage:
    python -m confstats.verify_datasets
    python -m confstats.verify_datasets --data-dir ./data --json
    python -m confstats.verify_datasets --quiet

Loads every dataset found under the data directory, recomputes the
published views and checks their invariants:
    - continent distribution percentages partition 100
    - Big Tech + academia + unmapped partition 100
    - regional Big Tech shares sum to the Big Tech percentage
    - ranking weights equal the number of mapped rows
    - Gini-Simpson indices lie in [0, 1]

Exit codes:
    0: Valid — all checks passed.
    1: Missing files — a core dataset is absent.
    2: Parse error — a dataset file is malformed.
    3: Invariant violation — a recomputed view breaks an invariant.

Output:
    Default: human-readable summary to stdout.
    --json: structured JSON report to stdout.
    --quiet: no output, only exit code.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from confstats.aggregation import (
    process_big_tech,
    process_big_tech_by_region,
    process_committee_continent_distribution,
    process_continent_distribution,
)
from confstats.constants import CORE_DATASETS, DATASET_TO_FILENAME, PERCENT_TOLERANCE
from confstats.loader import DatasetNotFoundError, DatasetParseError, Row, load_dataset
from confstats.ranking import compute_country_ranking, compute_institution_ranking
from confstats.representation import compute_diversity

logger = logging.getLogger("confstats.verify")

# ---------------------------------------------------------------------------
# Exit codes: used by CLI, exposed for programmatic use
# ---------------------------------------------------------------------------

EXIT_OK: int = 0
EXIT_MISSING_FILES: int = 1
EXIT_PARSE_ERROR: int = 2
EXIT_INVARIANT: int = 3

EXIT_CODE_LABELS: dict[int, str] = {
    EXIT_OK: "VALID",
    EXIT_MISSING_FILES: "MISSING_FILES",
    EXIT_PARSE_ERROR: "PARSE_ERROR",
    EXIT_INVARIANT: "INVARIANT_VIOLATION",
}

WEIGHT_TOLERANCE: float = 1e-6
REGION_TOLERANCE: float = 0.005
MAX_REPORTED_VIOLATIONS = 5


# ---------------------------------------------------------------------------
# VerificationReport
# ---------------------------------------------------------------------------


@dataclass
class VerificationReport:
    """Structured report from dataset verification.

    Fields:
        valid: True only if ALL checks pass.
        data_dir: Directory that was verified.
        checks: List of {check, passed, detail?} dicts.
        errors: Flat list of human-readable error strings.
        exit_code: First failure class encountered (0 = ok).
    """
    valid: bool = True
    data_dir: str = ""
    checks: list[dict[str, Any]] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    exit_code: int = EXIT_OK

    def fail(self, check: str, detail: str, code: int) -> None:
        """Record a failed check."""
        self.valid = False
        self.checks.append({"check": check, "passed": False, "detail": detail})
        self.errors.append(f"[{check}] {detail}")
        if self.exit_code == EXIT_OK:
            self.exit_code = code

    def ok(self, check: str, detail: str = "") -> None:
        """Record a passing check."""
        self.checks.append({"check": check, "passed": True, "detail": detail})

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "data_dir": self.data_dir,
            "exit_code": self.exit_code,
            "checks": self.checks,
            "errors": self.errors,
        }


# ---------------------------------------------------------------------------
# Invariant checks
# ---------------------------------------------------------------------------


def _summarize(violations: list[str]) -> str:
    shown = "; ".join(violations[:MAX_REPORTED_VIOLATIONS])
    extra = len(violations) - MAX_REPORTED_VIOLATIONS
    return shown + (f" (+{extra} more)" if extra > 0 else "")


def _record(report: VerificationReport, check: str, violations: list[str], checked: int) -> None:
    if violations:
        report.fail(check, _summarize(violations), EXIT_INVARIANT)
    else:
        report.ok(check, f"{checked} key(s)")


def check_continent_partition(report: VerificationReport, dataset: str, rows: list[Row]) -> None:
    compute = (
        process_committee_continent_distribution if dataset == "committee"
        else process_continent_distribution
    )
    items = compute(rows)
    violations = []
    for item in items:
        if item.total <= 0:
            continue
        total = sum(item.percentages().values())
        if abs(total - 100) > PERCENT_TOLERANCE:
            violations.append(f"{item.conference} {item.year}: {total:.2f}")
    _record(report, f"{dataset}:continent_partition", violations, len(items))


def check_big_tech_partition(report: VerificationReport, rows: list[Row]) -> None:
    items = process_big_tech(rows)
    violations = []
    for item in items:
        total = item.big_tech + item.academia + item.unmapped
        if abs(total - 100) > PERCENT_TOLERANCE:
            violations.append(f"{item.conference} {item.year}: {total:.2f}")
    _record(report, "papers:big_tech_partition", violations, len(items))


def check_regional_reconciliation(report: VerificationReport, rows: list[Row]) -> None:
    items = process_big_tech_by_region(rows)
    violations = []
    for item in items:
        regional = item.north_america + item.europe + item.asia + item.others
        if abs(regional - item.big_tech) > REGION_TOLERANCE:
            violations.append(
                f"{item.conference} {item.year}: {regional:.2f} != {item.big_tech:.2f}"
            )
    _record(report, "papers:regional_reconciliation", violations, len(items))


def check_weight_conservation(report: VerificationReport, dataset: str, rows: list[Row]) -> None:
    violations = []
    for summary in (compute_country_ranking(rows), compute_institution_ranking(rows)):
        mapped = summary.total_rows - summary.unmapped_count
        if abs(summary.total_weight - mapped) > WEIGHT_TOLERANCE * max(1, mapped):
            violations.append(
                f"{summary.kind}: weight {summary.total_weight:.6f} != {mapped} mapped rows"
            )
    _record(report, f"{dataset}:weight_conservation", violations, 2)


def check_diversity_bounds(
    report: VerificationReport,
    papers: list[Row],
    committee: list[Row],
) -> None:
    items = compute_diversity(papers, committee)
    violations = [
        f"{item.conference}: committee={item.committee} papers={item.papers}"
        for item in items
        if not (0.0 <= item.committee <= 1.0 and 0.0 <= item.papers <= 1.0)
    ]
    _record(report, "diversity_bounds", violations, len(items))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def verify_datasets(data_dir: Path) -> VerificationReport:
    """Load every dataset under ``data_dir`` and check its invariants.

    Missing optional datasets are skipped; missing core datasets fail
    with EXIT_MISSING_FILES. Never raises on validation failure.
    """
    report = VerificationReport(data_dir=str(data_dir))
    loaded: dict[str, list[Row]] = {}

    for dataset in DATASET_TO_FILENAME:
        check = f"{dataset}:load"
        try:
            loaded[dataset] = load_dataset(dataset, data_dir)
        except DatasetNotFoundError as exc:
            if dataset in CORE_DATASETS:
                report.fail(check, exc.detail, EXIT_MISSING_FILES)
            else:
                report.ok(check, f"skipped ({exc.filename} not present)")
            continue
        except DatasetParseError as exc:
            report.fail(check, str(exc), EXIT_PARSE_ERROR)
            continue
        report.ok(check, f"{len(loaded[dataset])} rows")

    for dataset in ("papers", "committee"):
        if dataset in loaded:
            check_continent_partition(report, dataset, loaded[dataset])
    if "papers" in loaded:
        check_big_tech_partition(report, loaded["papers"])
        check_regional_reconciliation(report, loaded["papers"])
    for dataset in ("papers-country", "committee-country"):
        if dataset in loaded:
            check_weight_conservation(report, dataset, loaded[dataset])
    if "papers" in loaded and "committee" in loaded:
        check_diversity_bounds(report, loaded["papers"], loaded["committee"])

    logger.info("Verified %s: %d checks, exit code %d",
                data_dir, len(report.checks), report.exit_code)
    return report


def _default_data_dir() -> Path:
    return Path(__file__).resolve().parent.parent / "data"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="verify_datasets",
        description="Verify conference datasets: parsing and view invariants.",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Directory holding the CSV datasets (default: <repo>/data).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output structured JSON report.",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress all output. Exit code only.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run dataset verification. Returns exit code."""
    args = _build_parser().parse_args(argv)
    data_dir = Path(args.data_dir) if args.data_dir else _default_data_dir()

    report = verify_datasets(data_dir)

    if args.quiet:
        return report.exit_code

    if args.json_output:
        print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
        return report.exit_code

    status = EXIT_CODE_LABELS.get(report.exit_code, "FAILED")
    print(f"Data dir: {data_dir}")
    print(f"Status:   {status}")
    print(f"Checks:   {len(report.checks)}")

    for check in report.checks:
        marker = "✓" if check["passed"] else "✗"
        detail = f" — {check['detail']}" if check.get("detail") else ""
        print(f"  {marker} {check['check']}{detail}")

    if report.errors:
        print(f"\nErrors ({len(report.errors)}):")
        for err in report.errors:
            print(f"  • {err}")

    print(f"\nExit code: {report.exit_code}")
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
