"""Mirror of in-progress work to the session's local store."""

import json
import logging

from .exceptions import ParseError
from .models import ExtractedRecord, PersistedState
from .session import Session

logger = logging.getLogger(__name__)

RECORD_KEY = "ed_extractedFormData"
MESSAGE_KEY = "ed_submitMessage"
ERROR_KEY = "ed_submitError"


class PersistenceMirror:
    """
    Saves {record, status message, error flag} under fixed keys.

    Absent values remove their key instead of storing a placeholder. Store
    failures are logged and otherwise ignored: losing the mirror never
    interrupts the workflow.
    """

    def __init__(self, session: Session):
        self.store = session.store

    def save(self, state: PersistedState) -> None:
        try:
            if state.record is None:
                self.store.remove(RECORD_KEY)
            else:
                self.store.set(RECORD_KEY, json.dumps(state.record.to_dict(), ensure_ascii=False))

            if state.message is None:
                self.store.remove(MESSAGE_KEY)
            else:
                self.store.set(MESSAGE_KEY, state.message)

            self.store.set(ERROR_KEY, "true" if state.error else "false")
        except OSError as e:
            logger.warning("Could not persist intake state: %s", e)

    def clear(self) -> None:
        try:
            for key in (RECORD_KEY, MESSAGE_KEY, ERROR_KEY):
                self.store.remove(key)
        except OSError as e:
            logger.warning("Could not clear persisted intake state: %s", e)

    def load(self) -> PersistedState:
        try:
            raw_record = self.store.get(RECORD_KEY)
            message = self.store.get(MESSAGE_KEY)
            error = self.store.get(ERROR_KEY) == "true"
        except OSError as e:
            logger.warning("Could not read persisted intake state: %s", e)
            return PersistedState()

        record = None
        if raw_record:
            try:
                record = _decode_record(raw_record)
            except ParseError as e:
                logger.warning("Discarding persisted record: %s", e)
        return PersistedState(record=record, message=message, error=error)


def _decode_record(raw: str) -> ExtractedRecord:
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise ParseError(f"Persisted record is not valid JSON: {e}")
    return ExtractedRecord.from_output(data)
