"""
Pick the 49-key window the on-screen keyboard shows for an exercise.

The window is centred on the exercise, its lower edge dropped to the nearest C
so the keyboard starts on an octave boundary, then slid until it covers every
note. Only the instrument bounds may cut it short, and that is logged rather
than compensated for by widening.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from config import DEFAULT_RANGE, HIGHEST_NOTE, LOWEST_NOTE, RANGE_HALF_SPAN, SEMITONES_PER_OCTAVE
from progression import ProgressionChord, progression_notes
from theory import NotePosition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoteRange:
    lowest_note: int
    highest_note: int

    @property
    def key_count(self) -> int:
        return self.highest_note - self.lowest_note + 1

    @property
    def lowest_position(self) -> NotePosition:
        return NotePosition.from_midi(self.lowest_note)

    @property
    def highest_position(self) -> NotePosition:
        return NotePosition.from_midi(self.highest_note)

    def __contains__(self, note: object) -> bool:
        return isinstance(note, int) and self.lowest_note <= note <= self.highest_note

    def covers(self, notes: Iterable[int]) -> bool:
        return all(n in self for n in notes)


def select_range(sequence: Sequence[int]) -> NoteRange:
    if not sequence:
        return NoteRange(*DEFAULT_RANGE)

    lo, hi = min(sequence), max(sequence)
    center = (lo + hi) // 2
    start = center - RANGE_HALF_SPAN
    start -= start % SEMITONES_PER_OCTAVE
    end = start + 2 * RANGE_HALF_SPAN

    if lo < start:
        shift = start - lo
        start -= shift
        end -= shift
    if hi > end:
        shift = hi - end
        start += shift
        end += shift

    if hi - lo > 2 * RANGE_HALF_SPAN:
        logger.warning(
            "Exercise spans %d semitones, wider than the %d-key window", hi - lo, 2 * RANGE_HALF_SPAN + 1
        )

    clamped_start = max(start, LOWEST_NOTE)
    clamped_end = min(end, HIGHEST_NOTE)
    if (clamped_start, clamped_end) != (start, end):
        logger.warning(
            "Range %d-%d clamped to instrument bounds as %d-%d", start, end, clamped_start, clamped_end
        )
    selected = NoteRange(clamped_start, clamped_end)
    if not selected.covers((lo, hi)):
        logger.warning("Range %d-%d leaves exercise notes %d-%d uncovered", clamped_start, clamped_end, lo, hi)
    return selected


def select_range_for_progression(progression: Iterable[ProgressionChord]) -> NoteRange:
    return select_range(progression_notes(progression))
