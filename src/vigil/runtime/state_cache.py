"""Cached addresses discovered in the observed process."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Mapping, Protocol

NULL_ADDRESS = 0

GAME_STATES_KEY = "Game States"
FILE_ROOT_KEY = "File Root"
AREA_CHANGE_COUNTER_KEY = "AreaChangeCounter"
GAME_CULL_SIZE_KEY = "GameCullSize"
TERRAIN_ROTATION_SELECTOR_KEY = "Terrain Rotation Selector"
TERRAIN_ROTATOR_HELPER_KEY = "Terrain Rotator Helper"

ROTATION_SELECTOR_SIZE = 9
# Terrain height lookups assume this length.
ROTATOR_HELPER_SIZE = 25


class AddressTable(Protocol):
    """Resolves well-known symbolic names to addresses in the observed process.

    Only meaningful after an address-found notification.
    """

    def lookup(self, name: str) -> int: ...


class StaticAddressTable:
    """Mapping-backed :class:`AddressTable`; unknown names resolve to null."""

    def __init__(self, addresses: Mapping[str, int] | None = None) -> None:
        self._addresses: dict[str, int] = dict(addresses or {})

    def update(self, addresses: Mapping[str, int]) -> None:
        self._addresses.update(addresses)

    def lookup(self, name: str) -> int:
        return self._addresses.get(name, NULL_ADDRESS)


@dataclass(slots=True)
class AddressCell:
    key: str
    size: int | None = None
    address: int = field(default=NULL_ADDRESS)

    @property
    def is_valid(self) -> bool:
        return self.address != NULL_ADDRESS

    def reset(self) -> None:
        self.address = NULL_ADDRESS


class StateCache:
    """The six address cells mirrored from the observed process.

    Cells are written only by the scheduler's synchronization routines and can
    be read from anywhere.
    """

    def __init__(self) -> None:
        self.game_states = AddressCell(GAME_STATES_KEY)
        self.loaded_files = AddressCell(FILE_ROOT_KEY)
        self.area_change_counter = AddressCell(AREA_CHANGE_COUNTER_KEY)
        self.game_cull = AddressCell(GAME_CULL_SIZE_KEY)
        self.rotation_selector = AddressCell(
            TERRAIN_ROTATION_SELECTOR_KEY, size=ROTATION_SELECTOR_SIZE
        )
        self.rotator_helper = AddressCell(
            TERRAIN_ROTATOR_HELPER_KEY, size=ROTATOR_HELPER_SIZE
        )

    def cells(self) -> Iterator[AddressCell]:
        yield self.game_states
        yield self.loaded_files
        yield self.area_change_counter
        yield self.game_cull
        yield self.rotation_selector
        yield self.rotator_helper

    def reset(self) -> None:
        for cell in self.cells():
            cell.reset()

    def snapshot(self) -> dict[str, int]:
        return {cell.key: cell.address for cell in self.cells()}
