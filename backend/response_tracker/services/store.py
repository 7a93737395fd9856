# response_tracker/services/store.py

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterable, List, NamedTuple, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..db import Base, make_engine, make_session_factory, session_scope
from ..errors import DataError, DataResult, DataStoreError
from ..models.emergency import EmergencyRow
from ..models.response import ResponseRow
from ..schemas import Emergency, ManualPointEntry, Points, Response
from . import points as points_engine
from . import settings

log = logging.getLogger(__name__)


class RecordNotFound(LookupError):
    pass


class ExportSnapshot(NamedTuple):
    last_reset: Optional[datetime]
    emergencies: List[Emergency]
    manual_entries: List[ManualPointEntry]


def as_local(ts: datetime) -> datetime:
    """Store naive local timestamps; aware ones are converted first."""
    if ts.tzinfo is not None:
        return ts.astimezone().replace(tzinfo=None)
    return ts


class ResponseStore:
    """
    Owns the emergency categories, their responses and the points settings.

    Every mutator runs as one transaction and reports the outcome as a
    DataResult; storage exceptions never escape a mutator. Reads raise
    DataStoreError(READ_FAILED) when the store cannot be read.

    Construct one per process and pass it around:
        store = ResponseStore()                       # configured DB URL
        store = ResponseStore(make_engine("sqlite://"))  # in-memory
    """

    def __init__(
        self,
        engine: Optional[Engine] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.engine = engine or make_engine()
        self._factory = make_session_factory(self.engine)
        self._clock = clock
        # Serializes transactions from accidental concurrent callers
        self._lock = threading.RLock()

        Base.metadata.create_all(bind=self.engine)
        log.info("[Store] Ready on %s", self.engine.url)

    # ------------------------------------------------------------------
    # Session helpers
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        return as_local(self._clock())

    @contextmanager
    def _transaction(self):
        with self._lock:
            with session_scope(self._factory) as db:
                yield db

    @contextmanager
    def _reading(self):
        with self._lock:
            try:
                with session_scope(self._factory) as db:
                    yield db
            except (SQLAlchemyError, ValueError) as e:
                log.error("[Store] Read failed: %s", e)
                raise DataStoreError(DataError.READ_FAILED, str(e)) from e

    @staticmethod
    def _emergency_row(db: Session, emergency: Emergency) -> EmergencyRow:
        if emergency.id is not None:
            row = db.get(EmergencyRow, emergency.id)
        else:
            row = (
                db.query(EmergencyRow)
                .filter(EmergencyRow.type == emergency.type)
                .one_or_none()
            )
        if row is None:
            raise RecordNotFound(f"No emergency type {emergency.type!r}")
        return row

    @staticmethod
    def _response_row(db: Session, response: Response) -> ResponseRow:
        row = db.get(ResponseRow, response.id) if response.id is not None else None
        if row is None:
            raise RecordNotFound(f"No response with id {response.id}")
        return row

    @staticmethod
    def _load_emergencies(db: Session) -> List[Emergency]:
        rows = (
            db.query(EmergencyRow)
            .options(selectinload(EmergencyRow.responses))
            .order_by(EmergencyRow.id)
            .all()
        )
        return [Emergency.model_validate(row) for row in rows]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_emergencies(self) -> List[Emergency]:
        """All categories, busiest this month first."""
        with self._reading() as db:
            emergencies = self._load_emergencies(db)
            last_reset = settings.get_last_reset(db)
        return points_engine.sort_by_current_month(emergencies, self._now(), last_reset)

    def get_emergency(self, type: str) -> Optional[Emergency]:
        with self._reading() as db:
            row = (
                db.query(EmergencyRow)
                .options(selectinload(EmergencyRow.responses))
                .filter(EmergencyRow.type == type)
                .one_or_none()
            )
            return Emergency.model_validate(row) if row is not None else None

    def last_response(self) -> Optional[Response]:
        """The most recently persisted response across all categories."""
        with self._reading() as db:
            row = db.query(ResponseRow).order_by(ResponseRow.id.desc()).first()
            return Response.model_validate(row) if row is not None else None

    def last_reset(self) -> Optional[datetime]:
        with self._reading() as db:
            return settings.get_last_reset(db)

    def manual_point_entries(self) -> List[ManualPointEntry]:
        with self._reading() as db:
            return settings.get_manual_entries(db)

    def export_snapshot(self) -> ExportSnapshot:
        """
        Everything the CSV export needs, read in one transaction so a
        concurrent reset cannot land between the reads.
        """
        with self._reading() as db:
            emergencies = self._load_emergencies(db)
            last_reset = settings.get_last_reset(db)
            entries = settings.get_manual_entries(db)
        ordered = points_engine.sort_by_current_month(emergencies, self._now(), last_reset)
        return ExportSnapshot(last_reset, ordered, entries)

    def get_points(self) -> Points:
        """Dataset-wide points: every response plus manual entries."""
        with self._reading() as db:
            responses = [Response.model_validate(r) for r in db.query(ResponseRow).all()]
            entries = settings.get_manual_entries(db)
            last_reset = settings.get_last_reset(db)
        return points_engine.dataset_points(responses, entries, self._now(), last_reset)

    def emergency_points(self, emergency: Emergency) -> Points:
        return points_engine.emergency_points(emergency, self._now(), self.last_reset())

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def add_emergency(
        self,
        type: str,
        responses: Optional[Iterable[Response]] = None,
    ) -> DataResult:
        if not type:
            log.warning("[Store] Refusing to add an emergency type with no name")
            return DataResult.fail(DataError.WRITE_FAILED)

        try:
            with self._transaction() as db:
                exists = (
                    db.query(EmergencyRow.id)
                    .filter(EmergencyRow.type == type)
                    .first()
                )
                if exists is not None:
                    log.info("[Store] Emergency type %r already exists", type)
                    return DataResult.fail(DataError.ALREADY_EXISTS)

                row = EmergencyRow(type=type)
                for r in responses or []:
                    row.responses.append(
                        ResponseRow(
                            incident_number=r.incident_number,
                            details=r.details,
                            date=as_local(r.date),
                        )
                    )
                db.add(row)
                db.flush()
                created = Emergency.model_validate(row)
        except IntegrityError as e:
            log.info("[Store] Emergency type %r collided on insert: %s", type, e)
            return DataResult.fail(DataError.ALREADY_EXISTS)
        except SQLAlchemyError as e:
            log.error("[Store] Could not add emergency type %r: %s", type, e)
            return DataResult.fail(DataError.WRITE_FAILED)

        log.info("[Store] Added emergency type %r (%d responses)", type, created.responses_count)
        return DataResult.ok(created)

    def rename_emergency(self, emergency: Emergency, new_name: str) -> DataResult:
        if not new_name:
            return DataResult.fail(DataError.WRITE_FAILED)

        try:
            with self._transaction() as db:
                row = self._emergency_row(db, emergency)
                row.type = new_name
                db.flush()
        except (SQLAlchemyError, RecordNotFound) as e:
            log.error("[Store] Could not rename %r to %r: %s", emergency.type, new_name, e)
            return DataResult.fail(DataError.WRITE_FAILED)

        log.info("[Store] Renamed emergency type %r to %r", emergency.type, new_name)
        emergency.type = new_name
        return DataResult.ok(emergency)

    def delete_emergency(self, emergency: Emergency) -> DataResult:
        """Remove a category; its responses go with it."""
        try:
            with self._transaction() as db:
                row = self._emergency_row(db, emergency)
                db.delete(row)
        except (SQLAlchemyError, RecordNotFound) as e:
            log.error("[Store] Could not delete emergency type %r: %s", emergency.type, e)
            return DataResult.fail(DataError.CLEAR_FAILED)

        log.info("[Store] Deleted emergency type %r", emergency.type)
        return DataResult.ok()

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def add_response(self, response: Response, emergency: Emergency) -> DataResult:
        try:
            with self._transaction() as db:
                row = self._emergency_row(db, emergency)
                new_row = ResponseRow(
                    incident_number=response.incident_number,
                    details=response.details,
                    date=as_local(response.date),
                )
                row.responses.append(new_row)
                db.flush()
                new_id = new_row.id
                stored_date = new_row.date
        except (SQLAlchemyError, RecordNotFound) as e:
            log.error("[Store] Could not add response to %r: %s", emergency.type, e)
            return DataResult.fail(DataError.WRITE_FAILED)

        response.id = new_id
        # Caller may have passed an aware date; keep the naive local value stored
        response.date = stored_date
        emergency.responses.append(response)
        log.debug("[Store] Added response %s to %r", new_id, emergency.type)
        return DataResult.ok(response)

    def remove_response(self, response: Response, emergency: Emergency) -> DataResult:
        """Detach and delete a response. Unknown responses are a no-op."""
        try:
            with self._transaction() as db:
                row = self._emergency_row(db, emergency)
                target = next(
                    (r for r in row.responses if r.id == response.id),
                    None,
                )
                if target is not None:
                    # delete-orphan cascade removes the record itself
                    row.responses.remove(target)
                    db.flush()
        except (SQLAlchemyError, RecordNotFound) as e:
            log.error("[Store] Could not remove response from %r: %s", emergency.type, e)
            return DataResult.fail(DataError.CLEAR_FAILED)

        if target is None:
            return DataResult.ok()

        emergency.responses = [r for r in emergency.responses if r.id != response.id]
        log.debug("[Store] Removed response %s from %r", response.id, emergency.type)
        return DataResult.ok()

    def update_response(self, response: Response, new_values: Response) -> DataResult:
        """Overwrite incident number, details and date; identity is kept."""
        try:
            with self._transaction() as db:
                row = self._response_row(db, response)
                row.incident_number = new_values.incident_number
                row.details = new_values.details
                row.date = as_local(new_values.date)
                db.flush()
                stored_date = row.date
        except (SQLAlchemyError, RecordNotFound) as e:
            log.error("[Store] Could not update response %s: %s", response.id, e)
            return DataResult.fail(DataError.WRITE_FAILED)

        response.incident_number = new_values.incident_number
        response.details = new_values.details
        response.date = stored_date
        return DataResult.ok(response)

    # ------------------------------------------------------------------
    # Manual points and resets
    # ------------------------------------------------------------------

    def add_manual_points(self, points: int) -> DataResult:
        """Append a new manual entry dated now. Entries are never merged."""
        if points < 0:
            log.warning("[Store] Ignoring negative manual points: %d", points)
            return DataResult.fail(DataError.WRITE_FAILED)

        try:
            with self._transaction() as db:
                entries = settings.get_manual_entries(db)
                entry = ManualPointEntry(date_added=self._now(), points=points)
                entries.append(entry)
                settings.save_manual_entries(db, entries)
        except (SQLAlchemyError, ValueError) as e:
            log.error("[Store] Could not add %d manual points: %s", points, e)
            return DataResult.fail(DataError.WRITE_FAILED)

        log.info("[Store] Manually added %d points", points)
        return DataResult.ok(entry)

    def clear_points(self) -> DataResult:
        """Drop manual entries and start a new points period now."""
        now = self._now()
        try:
            with self._transaction() as db:
                settings.clear_manual_entries(db)
                settings.set_last_reset(db, now)
        except SQLAlchemyError as e:
            log.error("[Store] Could not clear points: %s", e)
            return DataResult.fail(DataError.CLEAR_FAILED)

        log.info("[Store] Points cleared at %s", now.isoformat())
        return DataResult.ok(now)

    def clear_all_data(self) -> DataResult:
        now = self._now()
        try:
            with self._transaction() as db:
                db.query(ResponseRow).delete(synchronize_session=False)
                db.query(EmergencyRow).delete(synchronize_session=False)
                settings.clear_manual_entries(db)
                settings.set_last_reset(db, now)
        except SQLAlchemyError as e:
            log.error("[Store] Could not clear all data: %s", e)
            return DataResult.fail(DataError.CLEAR_FAILED)

        log.info("[Store] All data cleared at %s", now.isoformat())
        return DataResult.ok(now)
