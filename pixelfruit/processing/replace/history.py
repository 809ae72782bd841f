"""
Replacement history for an editing session.

Each applied replacement keeps a full snapshot of the buffer it started
from, so any entry can be undone, edited or deleted. Editing or deleting
an entry replays every later entry with its own recorded parameters so
the live buffer always equals the history applied in order.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .matching import find_in_range, replace_in_place, apply_replace
from .models import ColorMatch, ColorRangeSpec, HistoryEntry, ReplacementResult

logger = logging.getLogger(__name__)


class ReplacementHistory:
    """
    Owns a live RGBA buffer and the replacements applied to it.

    Features:
    - Full-snapshot entries for exact restoration
    - Undo of the latest entry
    - In-place edit and delete with replay of later entries
    - Match cache invalidated on every buffer change
    """

    def __init__(self, pixels: np.ndarray):
        """
        Start a session over a copy of ``pixels``.

        Args:
            pixels: uint8 array of shape (H, W, 4)
        """
        self._pixels = np.ascontiguousarray(pixels).copy()
        self.entries: List[HistoryEntry] = []
        self._match_cache: Dict[Tuple, List[ColorMatch]] = {}

        logger.debug(f"Started replacement session on {self.width}x{self.height} buffer")

    @property
    def width(self) -> int:
        return self._pixels.shape[1]

    @property
    def height(self) -> int:
        return self._pixels.shape[0]

    @property
    def pixels(self) -> np.ndarray:
        """Copy of the live buffer."""
        return self._pixels.copy()

    def __len__(self) -> int:
        return len(self.entries)

    def find(self, start, end, tolerance: float = 60) -> List[ColorMatch]:
        """Find colors in range on the live buffer, using the match cache."""
        spec = ColorRangeSpec(start=start, end=end, target_start=start,
                              target_end=end, tolerance=tolerance)
        key = (spec.start, spec.end, spec.tolerance, self.width, self.height)
        if key not in self._match_cache:
            self._match_cache[key] = find_in_range(self._pixels, spec.start, spec.end,
                                                   spec.tolerance)
        return self._match_cache[key]

    def preview(self, spec: ColorRangeSpec, mix_ratio: float) -> ReplacementResult:
        """Replacement result on a copy; the session is left untouched."""
        spec = ColorRangeSpec.from_dict(spec)
        matches = self.find(spec.start, spec.end, spec.tolerance)
        return apply_replace(self._pixels, matches, spec.start, spec.end,
                             spec.target_start, spec.target_end, mix_ratio)

    def apply(self, spec: ColorRangeSpec, mix_ratio: float) -> Optional[HistoryEntry]:
        """
        Replace colors in the live buffer and record the change.

        Returns:
            The new entry, or None when nothing matched
        """
        spec = ColorRangeSpec.from_dict(spec)
        self._check_mix(mix_ratio)

        matches = self.find(spec.start, spec.end, spec.tolerance)
        if not matches:
            logger.info("No colors found in range, nothing replaced")
            return None

        entry = self._run(spec, mix_ratio, matches, entry_id=uuid.uuid4().hex)
        self.entries.append(entry)
        logger.debug(f"Applied replacement {entry.entry_id}: {entry.changed_count} pixels")
        return entry

    def undo(self) -> Optional[HistoryEntry]:
        """Revert the latest replacement; None when the history is empty."""
        if not self.entries:
            logger.debug("Cannot undo: no replacements")
            return None
        entry = self.entries.pop()
        self._restore(entry.snapshot)
        logger.debug(f"Undid replacement {entry.entry_id}")
        return entry

    def edit(self, index: int, spec: ColorRangeSpec, mix_ratio: float) -> HistoryEntry:
        """
        Re-run the entry at ``index`` with new parameters.

        The entry keeps its slot and id; later entries are replayed.
        """
        spec = ColorRangeSpec.from_dict(spec)
        self._check_mix(mix_ratio)
        original = self._entry(index)

        self._restore(original.snapshot)
        matches = self.find(spec.start, spec.end, spec.tolerance)
        self.entries[index] = self._run(spec, mix_ratio, matches, entry_id=original.entry_id)
        self._replay(index + 1)

        logger.debug(f"Edited replacement {original.entry_id}")
        return self.entries[index]

    def delete(self, index: int) -> HistoryEntry:
        """Remove the entry at ``index`` and replay the entries after it."""
        entry = self._entry(index)
        self._restore(entry.snapshot)
        del self.entries[index]
        self._replay(index)

        logger.debug(f"Deleted replacement {entry.entry_id}")
        return entry

    def clear(self):
        """Forget all entries; the live buffer keeps its current content."""
        self.entries.clear()
        self._match_cache.clear()

    def get_history_summary(self) -> Dict[str, Any]:
        return {
            'total_entries': len(self.entries),
            'changed_pixels': sum(e.changed_count for e in self.entries),
            'entries': [e.to_dict() for e in self.entries],
        }

    def _entry(self, index: int) -> HistoryEntry:
        if not 0 <= index < len(self.entries):
            raise IndexError(f"History index out of range: {index}")
        return self.entries[index]

    def _run(self, spec: ColorRangeSpec, mix_ratio: float,
             matches: List[ColorMatch], entry_id: str) -> HistoryEntry:
        snapshot = self._pixels.copy()
        count = replace_in_place(self._pixels, matches, spec.start, spec.end,
                                 spec.target_start, spec.target_end, mix_ratio)
        if count:
            self._match_cache.clear()
        return HistoryEntry(
            entry_id=entry_id,
            spec=spec,
            mix_ratio=mix_ratio,
            changed_count=count,
            color_summary=tuple((m.color, m.count) for m in matches),
            snapshot=snapshot,
        )

    def _replay(self, start_index: int):
        for i in range(start_index, len(self.entries)):
            entry = self.entries[i]
            matches = self.find(entry.spec.start, entry.spec.end, entry.spec.tolerance)
            self.entries[i] = self._run(entry.spec, entry.mix_ratio, matches,
                                        entry_id=entry.entry_id)

    def _restore(self, snapshot: np.ndarray):
        self._pixels = snapshot.copy()
        self._match_cache.clear()

    @staticmethod
    def _check_mix(mix_ratio: float):
        if not 0 <= mix_ratio <= 1:
            raise ValueError(f"Mix ratio must be within [0, 1], got {mix_ratio}")
