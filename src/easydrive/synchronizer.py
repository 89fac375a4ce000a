"""
Keeps the dropoff address and its coordinates consistent, and tracks an
ephemeral fix for the pickup address.

The synchronizer observes every record change published by the workflow.
Address edits are forward geocoded after a debounce; map clicks write
coordinates immediately and reverse geocode the address. A one-shot
suppression flag keeps a reverse-geocoded address from being forward
geocoded again.
"""

import asyncio
import logging
from typing import Callable, Optional

from .config import config
from .exceptions import NetworkError
from .models import Coordinates, ExtractedRecord, MapView, to_text
from .scheduling import Debouncer, SuppressionFlag

logger = logging.getLogger(__name__)

PICKUP_KEY = ("pickup_location", "address")
DROPOFF_KEY = ("dropoff_location", "address")


class AddressSynchronizer:
    """
    Debounced, loop-safe address/coordinate synchronization.

    Args:
        geocoder: Object with blocking ``forward(address)`` and ``reverse(lat, lng)``
        read_record: Returns the current record, or None
        write_field: Writes one record leaf through the workflow
        pickup_delay: Debounce for pickup address edits, in seconds
        dropoff_delay: Debounce for dropoff address edits, in seconds
    """

    def __init__(
        self,
        geocoder,
        read_record: Callable[[], Optional[ExtractedRecord]],
        write_field: Callable[[str, str, str], None],
        pickup_delay: Optional[float] = None,
        dropoff_delay: Optional[float] = None,
    ):
        self.geocoder = geocoder
        self._read_record = read_record
        self._write_field = write_field
        self.pickup_delay = config.PICKUP_DEBOUNCE_S if pickup_delay is None else pickup_delay
        self.dropoff_delay = config.DROPOFF_DEBOUNCE_S if dropoff_delay is None else dropoff_delay

        self.debouncer = Debouncer()
        self.suppression = SuppressionFlag()
        self.pickup_coordinates: Optional[Coordinates] = None
        self._last_pickup_address = ""

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def observe(self, previous: Optional[ExtractedRecord], current: Optional[ExtractedRecord]) -> None:
        """React to a record change; ``previous`` is None for a new record."""
        if current is None:
            self.reset()
            return

        old_dropoff = previous.dropoff_location.address if previous is not None else None
        if current.dropoff_location.address != old_dropoff:
            self._on_dropoff_address(current)

        old_pickup = previous.pickup_location.address if previous is not None else None
        if current.pickup_location.address != old_pickup:
            self._on_pickup_address(current)

    def _on_dropoff_address(self, record: ExtractedRecord) -> None:
        self.debouncer.cancel(DROPOFF_KEY)
        location = record.dropoff_location
        address = location.address

        if not address.strip():
            if location.lat.strip() or location.lng.strip():
                logger.debug("Dropoff address cleared, dropping coordinates")
                self._write_field("dropoff_location", "lat", "")
                self._write_field("dropoff_location", "lng", "")
            return

        if self.suppression.consume():
            logger.debug("Skipping forward geocode for reverse-geocoded address")
            return

        self.debouncer.schedule(DROPOFF_KEY, self.dropoff_delay, lambda: self._geocode_dropoff(address))

    def _on_pickup_address(self, record: ExtractedRecord) -> None:
        self.debouncer.cancel(PICKUP_KEY)
        address = record.pickup_location.address.strip()

        if not address:
            self.pickup_coordinates = None
            self._last_pickup_address = ""
            return
        if address == self._last_pickup_address and self.pickup_coordinates is not None:
            return

        self._last_pickup_address = address
        self.debouncer.schedule(PICKUP_KEY, self.pickup_delay, lambda: self._geocode_pickup(address))

    # ------------------------------------------------------------------
    # Geocoding
    # ------------------------------------------------------------------

    async def _geocode_dropoff(self, address: str) -> None:
        coords = await self._forward(address)
        if coords is None:
            return

        record = self._read_record()
        if record is None or record.dropoff_location.address != address:
            logger.debug("Dropping stale dropoff fix for %r", address)
            return

        self._write_field("dropoff_location", "lat", to_text(coords.lat))
        self._write_field("dropoff_location", "lng", to_text(coords.lng))

    async def _geocode_pickup(self, address: str) -> None:
        coords = await self._forward(address)
        if coords is None:
            return

        record = self._read_record()
        if record is None or record.pickup_location.address.strip() != address:
            logger.debug("Dropping stale pickup fix for %r", address)
            return
        self.pickup_coordinates = coords

    async def _forward(self, address: str) -> Optional[Coordinates]:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self.geocoder.forward, address)
        except NetworkError as e:
            logger.warning("Forward geocode failed for %r: %s", address, e)
            return None

    async def map_click(self, lat: float, lng: float) -> None:
        """
        Place the dropoff at a clicked point and resolve its address.

        Coordinates are written at once; the address follows when the reverse
        lookup returns, provided the stored coordinates still match the click
        and the address was not edited meanwhile.
        """
        lat_text, lng_text = to_text(float(lat)), to_text(float(lng))
        self.debouncer.cancel(DROPOFF_KEY)
        self._write_field("dropoff_location", "lat", lat_text)
        self._write_field("dropoff_location", "lng", lng_text)
        record = self._read_record()
        address_at_click = record.dropoff_location.address if record is not None else None

        loop = asyncio.get_running_loop()
        try:
            address = await loop.run_in_executor(None, self.geocoder.reverse, float(lat), float(lng))
        except NetworkError as e:
            logger.warning("Reverse geocode failed for (%s, %s): %s", lat_text, lng_text, e)
            return
        if not address:
            return

        record = self._read_record()
        if record is None:
            return
        location = record.dropoff_location
        if (location.lat, location.lng) != (lat_text, lng_text) or location.address != address_at_click:
            logger.debug("Dropping stale reverse geocode for (%s, %s)", lat_text, lng_text)
            return
        if location.address == address:
            return

        self.suppression.arm()
        self._write_field("dropoff_location", "address", address)

    # ------------------------------------------------------------------
    # Lifecycle and view
    # ------------------------------------------------------------------

    def map_view(self, record: Optional[ExtractedRecord]) -> MapView:
        """Center on the dropoff fix, else the pickup fix, else the default center."""
        marker = record.dropoff_coordinates if record is not None else None
        if marker is None:
            marker = self.pickup_coordinates
        if marker is None:
            return MapView(center=Coordinates(*config.DEFAULT_CENTER), zoom=config.DEFAULT_ZOOM)
        return MapView(center=marker, zoom=config.FIX_ZOOM, marker=marker)

    @property
    def resolving(self) -> bool:
        """True while an address edit waits for, or runs, its forward geocode."""
        return self.debouncer.pending(DROPOFF_KEY) or self.debouncer.pending(PICKUP_KEY)

    def resume(self) -> None:
        """Start geocodes held back by edits made outside the event loop."""
        self.debouncer.flush()

    def reset(self) -> None:
        self.debouncer.cancel_all()
        self.suppression.reset()
        self.pickup_coordinates = None
        self._last_pickup_address = ""

    async def join(self) -> None:
        """Wait for every pending debounce and the geocode it triggers."""
        await self.debouncer.join()
