# response_tracker/services/csv_export.py

import csv
import logging
import os
import tempfile
from datetime import datetime
from io import StringIO
from pathlib import Path
from typing import Optional, Union

from ..config import CSV_DATE_FORMAT, CSV_EXPORT_FILENAME
from ..errors import DataError, DataResult, DataStoreError

log = logging.getLogger(__name__)

HEADER = "Emergency type, Incident number, Date, Details"
MANUAL_LABEL = "Manually added"


def format_date(value: datetime, date_format: str = CSV_DATE_FORMAT) -> str:
    return value.strftime(date_format)


def default_export_path() -> Path:
    return Path(tempfile.gettempdir()) / CSV_EXPORT_FILENAME


def render_csv(store, date_format: str = CSV_DATE_FORMAT) -> str:
    """
    Build the export document.

    Responses older than the last reset are left out. Each manual entry
    expands to one line per point, after a blank separator line.
    Read errors from the store propagate as DataStoreError.
    """
    snapshot = store.export_snapshot()
    since = snapshot.last_reset

    buf = StringIO()
    buf.write(HEADER + "\n")
    writer = csv.writer(buf, lineterminator="\n")

    for emergency in snapshot.emergencies:
        for r in emergency.responses:
            if since is not None and r.date < since:
                continue
            writer.writerow([
                emergency.type,
                r.incident_number,
                format_date(r.date, date_format),
                r.details,
            ])

    writer.writerow([])

    for entry in snapshot.manual_entries:
        added = format_date(entry.date_added, date_format)
        for _ in range(entry.points):
            writer.writerow([MANUAL_LABEL, "", added, ""])

    return buf.getvalue()


def export_csv(
    store,
    path: Optional[Union[str, Path]] = None,
    date_format: str = CSV_DATE_FORMAT,
) -> DataResult:
    """
    Write the export to `path` (default: temp dir), replacing any existing
    file atomically. Returns the written path on success.
    """
    target = Path(path) if path is not None else default_export_path()

    try:
        document = render_csv(store, date_format)
    except DataStoreError as e:
        log.error("[Export] Could not read data for export: %s", e)
        return DataResult.fail(e.kind)

    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{target.name}.",
            suffix=".tmp",
            dir=str(target.parent),
        )
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(document)
        os.replace(tmp_name, target)
    except OSError as e:
        log.error("[Export] Could not write %s: %s", target, e)
        if tmp_name is not None and os.path.exists(tmp_name):
            os.remove(tmp_name)
        return DataResult.fail(DataError.EXPORT_FAILED)

    log.info("[Export] Wrote %s", target)
    return DataResult.ok(target)
