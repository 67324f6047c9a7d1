# =============================================================================
# utils/reporting.py - Run summary and results export
# =============================================================================

import logging
from pathlib import Path
from typing import List, Dict, Any

import pandas as pd

from core.models import ContactResult, RunSummary
from utils.csv_utils import CSVHandler


RESULT_FIELDNAMES = [
    'display_name', 'target_address', 'sequence_number', 'proxy_address',
    'nickname', 'outcome', 'message', 'warning'
]


def failures_frame(summary: RunSummary) -> pd.DataFrame:
    """Failed display names and error messages, in run order"""
    return pd.DataFrame(
        [(failure.display_name, failure.error_message) for failure in summary.failures],
        columns=['Display Name', 'Error']
    )


def format_summary(summary: RunSummary) -> str:
    """Human readable run summary with a table of failures"""
    lines = [
        "Contact provisioning summary",
        f"  Total processed: {summary.total_processed}",
        f"  Succeeded:       {summary.succeeded}",
        f"  Failed:          {summary.failed}",
        f"  Skipped:         {summary.skipped}",
    ]
    if summary.warnings:
        lines.append(f"  Warnings:        {len(summary.warnings)}")

    if summary.failures:
        lines.append("")
        lines.append("Failed contacts:")
        lines.append(failures_frame(summary).to_string(index=False))

    return "\n".join(lines)


def results_to_rows(results: List[ContactResult]) -> List[Dict[str, Any]]:
    """Flatten per-record results for export"""
    rows = []
    for result in results:
        plan = result.plan
        rows.append({
            'display_name': plan.display_name if plan else result.record.display_name,
            'target_address': result.record.target_address,
            'sequence_number': plan.sequence_number if plan else '',
            'proxy_address': plan.proxy_address if plan else '',
            'nickname': plan.nickname if plan else '',
            'outcome': result.outcome.value,
            'message': result.message,
            'warning': result.warning,
        })
    return rows


def export_results(results: List[ContactResult], summary: RunSummary, output_path: str) -> None:
    """Write per-record results to a .csv or .xlsx file"""
    logger = logging.getLogger(__name__)
    rows = results_to_rows(results)

    if Path(output_path).suffix.lower() == '.xlsx':
        with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
            pd.DataFrame(rows, columns=RESULT_FIELDNAMES).to_excel(writer, sheet_name='Results', index=False)
            failures_frame(summary).to_excel(writer, sheet_name='Failures', index=False)
        logger.info(f"Exported {len(rows)} results to {output_path}")
    else:
        CSVHandler.write_csv(rows, output_path, RESULT_FIELDNAMES)
