"""
Chord sequences for the chord practice modes.

A progression is a list of ``ProgressionChord`` values: a chord, the octave its
root sits in and an optional roman-numeral label. Voice leading picks, for
every chord after the first, the inversion and octave that move the voices the
least from the chord before.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from config import HIGHEST_NOTE, LOWEST_NOTE, REFERENCE_OCTAVE
from theory import (
    ChordInfo,
    ChordQuality,
    MusicalKey,
    ScaleType,
    diatonic_chords,
)

logger = logging.getLogger(__name__)

ROMAN_NUMERALS = ["I", "II", "III", "IV", "V", "VI", "VII"]

# root octaves whose voicings can land inside A0..C8
MIN_VOICING_OCTAVE = 0
MAX_VOICING_OCTAVE = 8


@dataclass(frozen=True)
class ProgressionChord:
    chord: ChordInfo
    octave: int = REFERENCE_OCTAVE
    numeral: str = ""

    @property
    def name(self) -> str:
        if self.numeral:
            return f"{self.numeral}: {self.chord.name}"
        return self.chord.name

    def midi_notes(self) -> List[int]:
        return self.chord.midi_notes(self.octave)


def roman_numeral(degree: int, quality: ChordQuality) -> str:
    """Degree numeral cased by quality: I, ii, vii°, III+."""
    numeral = ROMAN_NUMERALS[degree % 7]
    if quality in (ChordQuality.MINOR, ChordQuality.MINOR7, ChordQuality.MINOR_MAJOR7):
        return numeral.lower()
    if quality in (ChordQuality.DIMINISHED, ChordQuality.DIMINISHED7, ChordQuality.HALF_DIMINISHED7):
        return numeral.lower() + "°"
    if quality in (ChordQuality.AUGMENTED, ChordQuality.AUGMENTED7):
        return numeral + "+"
    return numeral


def voice_leading_distance(previous: Sequence[int], current: Sequence[int]) -> int:
    """Total semitone movement between two voicings.

    Voices are paired lowest to lowest. When the chords differ in size, each
    unpaired voice is charged the distance to the nearest note of the other
    chord.
    """
    prev = sorted(previous)
    cur = sorted(current)
    total = sum(abs(a - b) for a, b in zip(prev, cur))
    if len(prev) != len(cur) and prev and cur:
        longer, shorter = (prev, cur) if len(prev) > len(cur) else (cur, prev)
        for note in longer[len(shorter):]:
            total += min(abs(note - other) for other in shorter)
    return total


def _in_bounds(notes: Iterable[int]) -> bool:
    return all(LOWEST_NOTE <= n <= HIGHEST_NOTE for n in notes)


def voicing_candidates(chord: ChordInfo) -> List[Tuple[int, int]]:
    """Every (inversion, octave) pair that keeps the chord on the keyboard, in tie-break order.

    Root position comes first, then lower octaves before higher ones.
    """
    candidates = []
    for inversion in range(len(chord.quality.intervals)):
        for octave in range(MIN_VOICING_OCTAVE, MAX_VOICING_OCTAVE + 1):
            if _in_bounds(chord.with_inversion(inversion).midi_notes(octave)):
                candidates.append((inversion, octave))
    return candidates


def best_voicing(
    previous: Sequence[int],
    chord: ChordInfo,
    start_octave: int = REFERENCE_OCTAVE,
) -> Tuple[ChordInfo, int]:
    """The voicing of ``chord`` closest to ``previous``.

    Ties go to root position, then to the lowest octave. ``start_octave`` is
    only used when no voicing fits on the keyboard.
    """
    best: Optional[Tuple[int, int, int]] = None
    for inversion, octave in voicing_candidates(chord):
        cost = voice_leading_distance(previous, chord.with_inversion(inversion).midi_notes(octave))
        ranked = (cost, inversion, octave)
        if best is None or ranked < best:
            best = ranked
    if best is None:
        logger.warning("No in-range voicing for %s near octave %d", chord.name, start_octave)
        return chord.with_inversion(0), start_octave
    _, inversion, octave = best
    return chord.with_inversion(inversion), octave


def voice_lead(
    chords: Sequence[ChordInfo],
    start_octave: int = REFERENCE_OCTAVE,
    numerals: Optional[Sequence[str]] = None,
) -> List[ProgressionChord]:
    """Assign each chord a voicing; the first chord keeps its own voicing at ``start_octave``."""
    result: List[ProgressionChord] = []
    previous: Optional[List[int]] = None
    for idx, chord in enumerate(chords):
        numeral = numerals[idx] if numerals and idx < len(numerals) else ""
        if previous is None:
            voiced, octave = chord, start_octave
        else:
            voiced, octave = best_voicing(previous, chord, start_octave)
        step = ProgressionChord(voiced, octave, numeral)
        previous = step.midi_notes()
        result.append(step)
    return result


def generate_chord_progression(
    key: MusicalKey,
    scale_type: ScaleType,
    start_octave: int = REFERENCE_OCTAVE,
    sevenths: bool = False,
) -> List[ProgressionChord]:
    """The diatonic chords of the key in degree order, voice-led."""
    chords = diatonic_chords(key, scale_type, sevenths=sevenths)
    numerals = [roman_numeral(degree, chord.quality) for degree, chord in enumerate(chords)]
    return voice_lead(chords, start_octave, numerals)


def chords_by_key(
    key: MusicalKey,
    scale_type: ScaleType,
    octave: int = REFERENCE_OCTAVE,
) -> List[ProgressionChord]:
    """Every diatonic triad of the key in root position, then each inversion."""
    steps = []
    for degree, chord in enumerate(diatonic_chords(key, scale_type)):
        numeral = roman_numeral(degree, chord.quality)
        for inversion in range(len(chord.quality.intervals)):
            steps.append(ProgressionChord(chord.with_inversion(inversion), octave, numeral))
    return steps


def chords_by_type(
    quality: ChordQuality,
    include_inversions: bool = True,
    octave: int = REFERENCE_OCTAVE,
) -> List[ProgressionChord]:
    """One chord quality planed over all twelve roots, C upwards."""
    inversions = range(len(quality.intervals)) if include_inversions else range(1)
    return [
        ProgressionChord(ChordInfo(root, quality, inversion), octave)
        for root in MusicalKey
        for inversion in inversions
    ]


def progression_notes(progression: Iterable[ProgressionChord]) -> List[int]:
    notes = set()
    for step in progression:
        notes.update(step.midi_notes())
    return sorted(notes)


# ---- Named progressions ----
class ProgressionDifficulty(Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


@dataclass(frozen=True)
class NamedProgression:
    """A progression written as (semitones above the tonic, quality) pairs."""

    name: str
    numerals: Tuple[str, ...]
    degrees: Tuple[Tuple[int, ChordQuality], ...]
    difficulty: ProgressionDifficulty
    description: str = ""

    def chords(self, key: MusicalKey) -> List[ChordInfo]:
        return [ChordInfo(key.transpose(offset), quality) for offset, quality in self.degrees]

    def generate(self, key: MusicalKey, start_octave: int = REFERENCE_OCTAVE) -> List[ProgressionChord]:
        return voice_lead(self.chords(key), start_octave, self.numerals)


_MAJ = ChordQuality.MAJOR
_MIN = ChordQuality.MINOR

PROGRESSION_LIBRARY: Tuple[NamedProgression, ...] = (
    NamedProgression(
        "I - V", ("I", "V"), ((0, _MAJ), (7, _MAJ)),
        ProgressionDifficulty.BEGINNER,
        "Tonic to dominant, the backbone cadence.",
    ),
    NamedProgression(
        "I - vi", ("I", "vi"), ((0, _MAJ), (9, _MIN)),
        ProgressionDifficulty.BEGINNER,
        "Tonic to relative minor.",
    ),
    NamedProgression(
        "vi - IV", ("vi", "IV"), ((9, _MIN), (5, _MAJ)),
        ProgressionDifficulty.BEGINNER,
        "Relative minor lifting to the subdominant.",
    ),
    NamedProgression(
        "I - V - vi - IV", ("I", "V", "vi", "IV"), ((0, _MAJ), (7, _MAJ), (9, _MIN), (5, _MAJ)),
        ProgressionDifficulty.INTERMEDIATE,
        "The four-chord pop progression.",
    ),
    NamedProgression(
        "vi - IV - I - V", ("vi", "IV", "I", "V"), ((9, _MIN), (5, _MAJ), (0, _MAJ), (7, _MAJ)),
        ProgressionDifficulty.INTERMEDIATE,
        "The pop progression started from the relative minor.",
    ),
    NamedProgression(
        "I - vi - IV - V", ("I", "vi", "IV", "V"), ((0, _MAJ), (9, _MIN), (5, _MAJ), (7, _MAJ)),
        ProgressionDifficulty.INTERMEDIATE,
        "Fifties progression ending on the dominant.",
    ),
    NamedProgression(
        "ii - V - I", ("ii", "V", "I"), ((2, _MIN), (7, _MAJ), (0, _MAJ)),
        ProgressionDifficulty.ADVANCED,
        "The jazz cadence.",
    ),
    NamedProgression(
        "I - bVII - IV", ("I", "bVII", "IV"), ((0, _MAJ), (10, _MAJ), (5, _MAJ)),
        ProgressionDifficulty.ADVANCED,
        "Rock progression with the borrowed flat seven.",
    ),
)


def get_progression(name: str) -> NamedProgression:
    for progression in PROGRESSION_LIBRARY:
        if progression.name == name:
            return progression
    raise ValueError(f"Unknown progression: {name!r}")


def progressions_for_difficulty(difficulty: ProgressionDifficulty) -> List[NamedProgression]:
    return [p for p in PROGRESSION_LIBRARY if p.difficulty is difficulty]
