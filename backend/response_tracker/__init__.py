from .errors import DataError, DataResult, DataStoreError
from .schemas import Emergency, ManualPointEntry, Points, Response
from .services.store import ResponseStore
from .services.csv_export import export_csv, render_csv

__all__ = [
    "DataError",
    "DataResult",
    "DataStoreError",
    "Emergency",
    "ManualPointEntry",
    "Points",
    "Response",
    "ResponseStore",
    "export_csv",
    "render_csv",
]
