"""Loading of the region table."""

from __future__ import annotations

import warnings

from .tables import MAX_REGIONS, Region, Tables


class RegionLoader:
    """Fills the region table of a program one entry at a time."""

    def __init__(self, tables: Tables) -> None:
        self.tables = tables
        self.expected = 0
        self.loaded = 0

    def header(self, nb_regions: int) -> None:
        """Record how many regions the file announces."""
        if not 0 <= nb_regions <= MAX_REGIONS:
            raise ValueError(f"nombre de régions invalide ({nb_regions})")
        self.expected = nb_regions

    def region(self, index: int, nis: int, size: int) -> Region:
        """Store one region; its parent and instructions are reset."""
        if not 0 <= index < MAX_REGIONS:
            raise ValueError(f"index région hors limites ({index})")
        if nis < 0:
            warnings.warn(
                f"NIS négatif ({nis}) pour région {index}", RuntimeWarning, stacklevel=2
            )
        if size < 0:
            warnings.warn(
                f"taille négative ({size}) pour région {index}", RuntimeWarning, stacklevel=2
            )
        entry = Region(number=index, parent=-1, nis=nis, size=size, instructions=None)
        self.tables.regions[index] = entry
        self.loaded += 1
        return entry

    def finish(self) -> int:
        """Check the count against the header and return how many were loaded."""
        if self.loaded != self.expected:
            warnings.warn(
                f"{self.loaded}/{self.expected} regions chargées", RuntimeWarning, stacklevel=2
            )
        return self.loaded