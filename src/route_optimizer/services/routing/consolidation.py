"""Geocode delivery addresses and merge the ones that share a physical stop."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence

from ...models.domain import Address, Coordinates, LocationGroup
from ..geospatial import distance_m
from .errors import ProviderError
from .providers import GeocodingProvider

logger = logging.getLogger(__name__)


class GeoConsolidator:
    """Greedy single-pass proximity grouping.

    Each unprocessed address seeds a group and absorbs every later unprocessed
    address within ``radius_m`` of the seed. Chains of stops that are each
    close to a neighbour but farther than ``radius_m`` from the seed are not
    merged transitively.
    """

    def __init__(
        self,
        geocoder: GeocodingProvider,
        *,
        radius_m: float = 100.0,
        max_parallel_requests: int = 1,
    ) -> None:
        self.geocoder = geocoder
        self.radius_m = radius_m
        self.max_parallel_requests = max(1, max_parallel_requests)

    def _resolve(self, address: Address) -> Optional[Coordinates]:
        try:
            coordinates = self.geocoder.resolve(address.address)
        except ProviderError as exc:
            logger.warning(f"Geocoding failed for order {address.reference}: {exc}")
            return None
        if coordinates is None:
            logger.warning(f"No coordinates found for order {address.reference}")
        return coordinates

    def geocode(self, addresses: Sequence[Address]) -> list[Optional[Coordinates]]:
        if self.max_parallel_requests == 1 or len(addresses) < 2:
            return [self._resolve(address) for address in addresses]
        with ThreadPoolExecutor(max_workers=self.max_parallel_requests) as executor:
            # map preserves input order, each slot is written by exactly one task
            return list(executor.map(self._resolve, addresses))

    def group(
        self,
        addresses: Sequence[Address],
        coordinates: Sequence[Optional[Coordinates]],
    ) -> list[LocationGroup]:
        groups: list[LocationGroup] = []
        processed: set[int] = set()

        for i, address in enumerate(addresses):
            if i in processed:
                continue
            processed.add(i)
            seed = coordinates[i]
            members = [address]

            if seed is not None:
                for j in range(i + 1, len(addresses)):
                    if j in processed or coordinates[j] is None:
                        continue
                    if distance_m(seed, coordinates[j]) <= self.radius_m:
                        members.append(addresses[j])
                        processed.add(j)

            groups.append(
                LocationGroup(
                    id=f"location-{len(groups) + 1}",
                    address=address.address,
                    coordinates=seed,
                    orders=members,
                )
            )
        return groups

    def consolidate(self, addresses: Sequence[Address]) -> list[LocationGroup]:
        coordinates = self.geocode(addresses)
        groups = self.group(addresses, coordinates)
        unresolved = sum(1 for value in coordinates if value is None)
        logger.info(
            f"Consolidated {len(addresses)} orders into {len(groups)} locations "
            f"({unresolved} addresses could not be geocoded)"
        )
        return groups
