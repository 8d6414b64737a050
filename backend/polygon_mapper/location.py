"""
Current-position lookup used to re-center the map.

A lookup is a single attempt bounded by a timeout. The pending request is
cancelled when the timeout expires and nothing is retried.
"""

import asyncio
from typing import Optional, Protocol

from loguru import logger

from .errors import LocationUnavailable
from .models import Coordinate, make_coordinate

DEFAULT_TIMEOUT_SECONDS = 10.0


class LocationProvider(Protocol):
    async def get_current_position(self) -> Coordinate:
        """Raise PermissionError when access is denied."""
        ...


class FixedLocationProvider:
    """Reports a configured position, or fails when none is configured."""

    def __init__(self, position: Optional[Coordinate] = None):
        self.position = make_coordinate(position) if position is not None else None

    async def get_current_position(self) -> Coordinate:
        if self.position is None:
            raise LocationUnavailable("Geolocation is not configured")
        return self.position


async def locate(provider: LocationProvider, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> Coordinate:
    """
    Ask the provider for the current position once.

    Raises:
        LocationUnavailable: timed out, denied, or unsupported
    """
    try:
        position = await asyncio.wait_for(provider.get_current_position(), timeout)
    except asyncio.TimeoutError as e:
        logger.warning(f"Location request timed out after {timeout}s")
        raise LocationUnavailable(f"Location request timed out after {timeout}s") from e
    except PermissionError as e:
        logger.warning("Location permission denied")
        raise LocationUnavailable("Location permission denied") from e
    except LocationUnavailable as e:
        logger.warning(f"Unable to retrieve location: {e}")
        raise

    return make_coordinate(position)
