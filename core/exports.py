# ================================================================
# File     : exports.py
# Purpose  : CSV export of the FIDO2 audit report
# Notes    : Called by the audit module after the console report.
#            Export failures are reported, never fatal.
# ================================================================

import pathlib
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.utils import fncPrintMessage, fncEnsureFolder, fncExportCSV

REPORT_FIELDS = ["DisplayName", "UserPrincipalName", "ID"]
REPORT_FILENAME_PREFIX = "Users_Without_FIDO2"


# ================================================================
# Function: fncReportFilename
# Purpose  : Build Users_Without_FIDO2_<YYYY-MM-DD>_<HHmm>.csv
# Notes    : Local wall-clock time
# ================================================================
def fncReportFilename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"{REPORT_FILENAME_PREFIX}_{now.strftime('%Y-%m-%d')}_{now.strftime('%H%M')}.csv"


# ================================================================
# Function: fncExportReport
# Purpose  : Write the report rows to the output directory
# Notes    : Returns the written path, or None when skipped/failed
# ================================================================
def fncExportReport(
    rows: List[Dict[str, Any]],
    output_dir,
    enabled: bool,
    now: Optional[datetime] = None,
) -> Optional[pathlib.Path]:
    if not enabled:
        fncPrintMessage("CSV export skipped (use --export-csv to write a report file).", "info")
        return None

    filename = fncReportFilename(now)
    try:
        out_dir = fncEnsureFolder(output_dir)
        path = fncExportCSV(out_dir / filename, rows, REPORT_FIELDS)
    except OSError as ex:
        fncPrintMessage(f"Failed to export CSV '{filename}' to {output_dir}: {ex}", "error")
        return None

    fncPrintMessage(f"Saved CSV → {path} ({len(rows)} rows)", "success")
    return path
