"""
EasyDrive Intake Package

Document intake for vehicle transport orders: a release form is extracted
into an editable record by an external service, reviewed, and submitted,
while the dropoff address and its map coordinates are kept in sync.
"""

from .exceptions import (
    IntakeError,
    UserInputError,
    UnsupportedFileError,
    NoRecordError,
    UnknownFieldError,
    NetworkError,
    ParseError,
)
from .models import (
    Coordinates,
    ExtractedRecord,
    MapView,
    PersistedState,
    SelectedFile,
    WorkflowStatus,
)
from .geocoding import GeocodingClient, normalize_query
from .persistence import PersistenceMirror
from .session import Identity, Session
from .storage import JsonFileStore, MemoryStore
from .synchronizer import AddressSynchronizer
from .webhook import WebhookClient
from .workflow import IntakeWorkflow

__version__ = "1.0.0"
__all__ = [
    "IntakeError",
    "UserInputError",
    "UnsupportedFileError",
    "NoRecordError",
    "UnknownFieldError",
    "NetworkError",
    "ParseError",
    "Coordinates",
    "ExtractedRecord",
    "MapView",
    "PersistedState",
    "SelectedFile",
    "WorkflowStatus",
    "GeocodingClient",
    "normalize_query",
    "PersistenceMirror",
    "Identity",
    "Session",
    "JsonFileStore",
    "MemoryStore",
    "AddressSynchronizer",
    "WebhookClient",
    "IntakeWorkflow",
]
