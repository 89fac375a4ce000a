"""
Extraction/submission workflow: the state machine behind the intake screen.
"""

import asyncio
import logging
from pathlib import PurePath
from typing import Any, Callable, Dict, List, Optional

from .config import config
from .exceptions import (
    NetworkError,
    NoRecordError,
    ParseError,
    UnsupportedFileError,
)
from .geocoding import GeocodingClient
from .models import (
    ExtractedRecord,
    MapView,
    PersistedState,
    SelectedFile,
    WorkflowStatus,
    to_text,
)
from .persistence import PersistenceMirror
from .session import Session
from .synchronizer import AddressSynchronizer
from .webhook import WebhookClient, build_files

logger = logging.getLogger(__name__)

NO_FILE_MESSAGE = "Please select a file to submit."
NO_RECORD_MESSAGE = "Extract a document before submitting."
EMPTY_OUTPUT_MESSAGE = "The extraction service returned no data."
EXTRACTED_MESSAGE = "Document extracted successfully. Please review the details then click Submit Document."
SUBMITTED_MESSAGE = "Document submitted successfully."

RecordListener = Callable[[Optional[ExtractedRecord], Optional[ExtractedRecord]], None]


class IntakeWorkflow:
    """
    Owns the selected file, the editable record and the current phase.

    Persisted work is restored on construction: a restored record is editable
    and submittable even though its file is gone. Every record or status
    change is mirrored to the session store, and every record change is
    published to listeners (the address synchronizer first).
    """

    def __init__(
        self,
        session: Session,
        webhook: Optional[WebhookClient] = None,
        geocoder=None,
        synchronizer: Optional[AddressSynchronizer] = None,
        request_file: Optional[Callable[[], None]] = None,
    ):
        self.session = session
        self.webhook = webhook or WebhookClient()
        self.mirror = PersistenceMirror(session)
        if synchronizer is None:
            synchronizer = AddressSynchronizer(geocoder or GeocodingClient(), lambda: self.record, self.edit_field)
        self.synchronizer = synchronizer
        self._request_file = request_file

        self.file: Optional[SelectedFile] = None
        self.record: Optional[ExtractedRecord] = None
        self.status = WorkflowStatus.IDLE
        self.message: Optional[str] = None
        self.error = False
        self.receipt: Optional[str] = None
        self.file_requested = False
        # Bumped when the file or record is discarded; stale completions check it
        self._generation = 0
        self._listeners: List[RecordListener] = []
        self.add_listener(self.synchronizer.observe)

        self._restore()

    # ------------------------------------------------------------------
    # State plumbing
    # ------------------------------------------------------------------

    def add_listener(self, listener: RecordListener) -> None:
        self._listeners.append(listener)

    def _set_record(self, record: Optional[ExtractedRecord]) -> None:
        previous = self.record
        self.record = record
        if record is not previous:
            for listener in list(self._listeners):
                listener(previous, record)

    def _set_status(self, status: WorkflowStatus, message: Optional[str] = None, error: bool = False) -> None:
        if status is not self.status:
            logger.info("Intake status %s -> %s", self.status.value, status.value)
        self.status = status
        self.message = message
        self.error = error

    def _fail(self, message: str) -> None:
        self._set_status(WorkflowStatus.ERROR, message, error=True)
        self._persist()

    def _persist(self) -> None:
        state = PersistedState(record=self.record, message=self.message, error=self.error)
        if state.is_empty:
            self.mirror.clear()
        else:
            self.mirror.save(state)

    def _resting_status(self) -> WorkflowStatus:
        if self.record is not None:
            return WorkflowStatus.REVIEWING
        if self.file is not None:
            return WorkflowStatus.FILE_SELECTED
        return WorkflowStatus.IDLE

    def _restore(self) -> None:
        state = self.mirror.load()
        self.message = state.message
        self.error = state.error
        self._set_record(state.record)
        if state.error:
            self.status = WorkflowStatus.ERROR
        else:
            self.status = self._resting_status()
        if state.record is not None:
            logger.info("Restored in-progress record without its file")

    def resume_sync(self) -> None:
        """
        Start address geocodes requested while no event loop was running,
        such as those for a restored record. Call from the running loop.
        """
        self.synchronizer.resume()

    @property
    def busy(self) -> bool:
        return self.status in (WorkflowStatus.EXTRACTING, WorkflowStatus.SUBMITTING)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def select_file(self, name: str, content: bytes, content_type: Optional[str] = None) -> SelectedFile:
        """
        Replace the selected file; any previous extraction is discarded.

        Raises:
            UnsupportedFileError: If the extension or size is rejected. The
                current selection and record are kept.
        """
        suffix = PurePath(name).suffix.lower()
        if suffix not in config.ACCEPTED_EXTENSIONS:
            raise UnsupportedFileError(
                f"Unsupported file type '{suffix or name}'. Allowed: {', '.join(config.ACCEPTED_EXTENSIONS)}"
            )
        if len(content) > config.MAX_UPLOAD_BYTES:
            raise UnsupportedFileError(f"File exceeds the {config.MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit")

        selected = SelectedFile.from_bytes(name, content, content_type)
        self._generation += 1
        self.mirror.clear()
        self.file = selected
        self.file_requested = False
        self.receipt = None
        self._set_record(None)
        self._set_status(WorkflowStatus.FILE_SELECTED)
        logger.info("Selected %s (%s, %s)", selected.name, selected.type, selected.size)
        return selected

    def remove_file(self, file_id: str) -> None:
        """Drop the selected file; an extracted record stays editable."""
        if self.file is None or self.file.id != file_id:
            return
        self.file = None
        if not self.busy and self.status is not WorkflowStatus.ERROR:
            self._set_status(self._resting_status(), self.message, self.error)

    async def extract(self) -> None:
        """Send the selected file for extraction and open the result for review."""
        if self.busy:
            logger.debug("Ignoring extract while %s", self.status.value)
            return
        if self.file is None:
            self._fail(NO_FILE_MESSAGE)
            self.file_requested = True
            if self._request_file is not None:
                self._request_file()
            return

        self.receipt = None
        self._set_status(WorkflowStatus.EXTRACTING)
        self._persist()

        generation = self._generation
        loop = asyncio.get_running_loop()
        try:
            output = await loop.run_in_executor(None, self.webhook.extract, build_files(self.file))
            record = ExtractedRecord.from_output(output)
        except NetworkError as e:
            logger.warning("Extraction failed: %s", e)
            if generation == self._generation:
                self._fail(str(e))
            return
        except ParseError as e:
            logger.warning("Extraction returned no usable output: %s", e)
            if generation == self._generation:
                self._fail(EMPTY_OUTPUT_MESSAGE)
            return

        if generation != self._generation:
            logger.debug("Discarding extraction for a replaced or cleared file")
            return
        self._set_record(record)
        self._set_status(WorkflowStatus.REVIEWING, EXTRACTED_MESSAGE)
        self._persist()

    def edit_field(self, section: str, key: Optional[str], value: Any) -> ExtractedRecord:
        """
        Replace one leaf of the record, keeping every sibling field.

        An address edit made outside a running event loop queues its geocode
        until ``resume_sync`` is called from one.

        Raises:
            NoRecordError: If nothing has been extracted or restored
            UnknownFieldError: If section/key is not in the record schema
        """
        if self.record is None:
            raise NoRecordError("There is no extracted record to edit")
        if self.record.get_field(section, key) == to_text(value):
            return self.record
        updated = self.record.with_field(section, key, value)
        self._set_record(updated)
        self._persist()
        return updated

    async def map_click(self, lat: float, lng: float) -> None:
        """Move the dropoff to a clicked map position."""
        if self.record is None:
            raise NoRecordError("There is no extracted record to place on the map")
        await self.synchronizer.map_click(lat, lng)

    async def submit(self) -> None:
        """Send the confirmed record, with the file when one is held."""
        if self.busy:
            logger.debug("Ignoring submit while %s", self.status.value)
            return
        if self.record is None:
            self._fail(NO_RECORD_MESSAGE)
            return

        self.receipt = None
        self._set_status(WorkflowStatus.SUBMITTING)
        self._persist()

        generation = self._generation
        loop = asyncio.get_running_loop()
        try:
            receipt = await loop.run_in_executor(
                None, self.webhook.submit, self.record, build_files(self.file), self.session.identity
            )
        except NetworkError as e:
            logger.warning("Submission failed: %s", e)
            if generation == self._generation:
                self._fail(str(e))
            return

        if generation != self._generation:
            logger.debug("Submission finished after the workflow was reset")
            return
        self.receipt = receipt
        self.file = None
        self._set_record(None)
        self._set_status(WorkflowStatus.IDLE, SUBMITTED_MESSAGE)
        self.mirror.clear()

    async def primary_action(self) -> None:
        """Submit when a record exists, otherwise extract."""
        if self.record is not None:
            await self.submit()
        else:
            await self.extract()

    def clear_all(self) -> None:
        """Discard file, record, receipt, status and persisted state."""
        self._generation += 1
        self.file = None
        self.receipt = None
        self.file_requested = False
        self._set_record(None)
        self._set_status(WorkflowStatus.IDLE)
        self.mirror.clear()

    def dismiss_receipt(self) -> None:
        self.receipt = None

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def map_view(self) -> MapView:
        return self.synchronizer.map_view(self.record)

    def snapshot(self) -> Dict[str, Any]:
        """Plain-data view of everything the intake screen renders."""
        view = self.map_view()
        return {
            "status": self.status.value,
            "message": self.message,
            "error": self.error,
            "file": None if self.file is None else {
                "id": self.file.id,
                "name": self.file.name,
                "size": self.file.size,
                "type": self.file.type,
            },
            "file_requested": self.file_requested,
            "record": None if self.record is None else self.record.to_dict(),
            "receipt": self.receipt,
            "account": self.session.display_label,
            "map": {
                "center": {"lat": view.center.lat, "lng": view.center.lng},
                "zoom": view.zoom,
                "marker": None if view.marker is None else {"lat": view.marker.lat, "lng": view.marker.lng},
                "resolving": self.synchronizer.resolving,
            },
        }
