"""
Data models for document intake.
"""

import json
import math
import mimetypes
import uuid
from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from .exceptions import ParseError, UnknownFieldError


_SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]


def format_file_size(num_bytes: int) -> str:
    """
    Render a byte count the way the upload list shows it.

    Examples:
        0 -> "0 Bytes", 1536 -> "1.5 KB", 2097152 -> "2 MB"
    """
    if num_bytes <= 0:
        return "0 Bytes"
    exponent = 0
    while num_bytes >= 1024 ** (exponent + 1) and exponent < len(_SIZE_UNITS) - 1:
        exponent += 1
    value = round(num_bytes / (1024 ** exponent), 2)
    text = ("%.2f" % value).rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[exponent]}"


@dataclass(frozen=True)
class SelectedFile:
    """The single document currently chosen for extraction"""
    id: str
    name: str
    size: str
    type: str
    content: bytes = field(repr=False)

    @classmethod
    def from_bytes(cls, name: str, content: bytes, content_type: Optional[str] = None) -> "SelectedFile":
        if not content_type:
            content_type = mimetypes.guess_type(name)[0] or "unknown"
        return cls(
            id=uuid.uuid4().hex[:9],
            name=name,
            size=format_file_size(len(content)),
            type=content_type,
            content=content,
        )

    @property
    def byte_count(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class Coordinates:
    """A finite latitude/longitude pair"""
    lat: float
    lng: float

    @classmethod
    def parse(cls, lat: Any, lng: Any) -> Optional["Coordinates"]:
        """Return coordinates when both values parse as finite floats, else None."""
        lat_value = _to_finite(lat)
        lng_value = _to_finite(lng)
        if lat_value is None or lng_value is None:
            return None
        return cls(lat_value, lng_value)


def _to_finite(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


@dataclass(frozen=True)
class Vehicle:
    vin: str = ""
    year: str = ""
    make: str = ""
    model: str = ""
    transmission: str = ""
    odometer_km: str = ""
    exterior_color: str = ""
    interior_color: str = ""
    has_accident: str = ""


@dataclass(frozen=True)
class SellingDealership:
    name: str = ""
    phone: str = ""
    address: str = ""


@dataclass(frozen=True)
class BuyingDealership:
    name: str = ""
    phone: str = ""
    contact_name: str = ""


@dataclass(frozen=True)
class PickupLocation:
    name: str = ""
    address: str = ""
    phone: str = ""


@dataclass(frozen=True)
class DropoffLocation:
    name: str = ""
    phone: str = ""
    address: str = ""
    lat: str = ""
    lng: str = ""


@dataclass(frozen=True)
class Transaction:
    transaction_id: str = ""
    release_form_number: str = ""
    release_date: str = ""
    arrival_date: str = ""


@dataclass(frozen=True)
class Authorization:
    released_by_name: str = ""
    released_to_name: str = ""


SECTIONS = {
    "vehicle": Vehicle,
    "selling_dealership": SellingDealership,
    "buying_dealership": BuyingDealership,
    "pickup_location": PickupLocation,
    "dropoff_location": DropoffLocation,
    "transaction": Transaction,
    "authorization": Authorization,
}

# Top-level free-text fields that do not belong to a section
TEXT_FIELDS = ("dealer_notes",)

# Alternate spellings the extraction service uses for a section name, in lookup order
SECTION_ALIASES = {
    "dropoff_location": ("dropoff_location", "drop_off_location"),
}


def to_text(value: Any) -> str:
    """Normalize an extracted leaf value to the text stored in the record."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, ensure_ascii=False)


def _leaf(output: Mapping, section: str, key: str) -> Any:
    for name in SECTION_ALIASES.get(section, (section,)):
        raw = output.get(name)
        if isinstance(raw, Mapping) and raw.get(key) is not None:
            return raw[key]
    return None


@dataclass(frozen=True)
class ExtractedRecord:
    """Editable result of document extraction; total over its schema"""
    vehicle: Vehicle = field(default_factory=Vehicle)
    selling_dealership: SellingDealership = field(default_factory=SellingDealership)
    buying_dealership: BuyingDealership = field(default_factory=BuyingDealership)
    pickup_location: PickupLocation = field(default_factory=PickupLocation)
    dropoff_location: DropoffLocation = field(default_factory=DropoffLocation)
    transaction: Transaction = field(default_factory=Transaction)
    authorization: Authorization = field(default_factory=Authorization)
    dealer_notes: str = ""

    @classmethod
    def from_output(cls, output: Any) -> "ExtractedRecord":
        """
        Build a record from the raw ``output`` object of the extraction service.

        Every key missing from ``output`` becomes an empty string, so applying
        this to ``record.to_dict()`` yields an equal record.

        Raises:
            ParseError: If ``output`` is not a JSON object
        """
        if not isinstance(output, Mapping):
            raise ParseError(f"Extraction output must be an object, got {type(output).__name__}")

        sections = {}
        for section, section_cls in SECTIONS.items():
            values = {f.name: to_text(_leaf(output, section, f.name)) for f in fields(section_cls)}
            sections[section] = section_cls(**values)
        texts = {name: to_text(output.get(name)) for name in TEXT_FIELDS}
        return cls(**sections, **texts)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def get_field(self, section: str, key: Optional[str] = None) -> str:
        self._check_field(section, key)
        if section in TEXT_FIELDS:
            return getattr(self, section)
        return getattr(getattr(self, section), key)

    def with_field(self, section: str, key: Optional[str], value: Any) -> "ExtractedRecord":
        """
        Return a copy with one leaf replaced.

        Sibling fields and every other section are carried over unchanged.
        Top-level text fields such as ``dealer_notes`` are addressed with
        ``key=None``.

        Raises:
            UnknownFieldError: If the section or key is not part of the schema
        """
        self._check_field(section, key)
        text = to_text(value)
        if section in TEXT_FIELDS:
            return replace(self, **{section: text})
        updated = replace(getattr(self, section), **{key: text})
        return replace(self, **{section: updated})

    @staticmethod
    def _check_field(section: str, key: Optional[str]) -> None:
        if section in TEXT_FIELDS:
            if key not in (None, "", section):
                raise UnknownFieldError(f"'{section}' has no key '{key}'")
            return
        if section not in SECTIONS:
            raise UnknownFieldError(f"Unknown record section '{section}'")
        if (section, key) not in schema_paths():
            raise UnknownFieldError(f"Unknown field '{section}.{key}'")

    @property
    def dropoff_coordinates(self) -> Optional[Coordinates]:
        """Dropoff fix, present only with a non-blank address and two finite numbers."""
        location = self.dropoff_location
        if not location.address.strip():
            return None
        return Coordinates.parse(location.lat, location.lng)


def schema_paths() -> Tuple[Tuple[str, Optional[str]], ...]:
    """Every editable (section, key) pair of the record schema."""
    paths = [
        (section, f.name)
        for section, section_cls in SECTIONS.items()
        for f in fields(section_cls)
    ]
    paths.extend((name, None) for name in TEXT_FIELDS)
    return tuple(paths)


class WorkflowStatus(str, Enum):
    IDLE = "idle"
    FILE_SELECTED = "file_selected"
    EXTRACTING = "extracting"
    REVIEWING = "reviewing"
    SUBMITTING = "submitting"
    ERROR = "error"


@dataclass
class PersistedState:
    """Snapshot mirrored to the local store"""
    record: Optional[ExtractedRecord] = None
    message: Optional[str] = None
    error: bool = False

    @property
    def is_empty(self) -> bool:
        return self.record is None and self.message is None and not self.error


@dataclass(frozen=True)
class MapView:
    """Where the dropoff map is centered and which fix, if any, is marked"""
    center: Coordinates
    zoom: int
    marker: Optional[Coordinates] = None
