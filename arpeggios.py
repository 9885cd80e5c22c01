from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List

from config import MAX_OCTAVES, MIN_OCTAVES, REFERENCE_OCTAVE, SEMITONES_PER_OCTAVE
from theory import ChordQuality, MusicalKey


class ArpeggioDirection(Enum):
    ASCENDING = "ascending"
    ASCENDING_DESCENDING = "ascending_descending"


ARPEGGIO_NAMES = {
    ChordQuality.MAJOR: "Major",
    ChordQuality.MINOR: "Minor",
    ChordQuality.DIMINISHED: "Diminished",
    ChordQuality.AUGMENTED: "Augmented",
    ChordQuality.DOMINANT7: "Dominant 7th",
    ChordQuality.MINOR7: "Minor 7th",
    ChordQuality.MAJOR7: "Major 7th",
    ChordQuality.HALF_DIMINISHED7: "Half-Diminished 7th",
    ChordQuality.DIMINISHED7: "Diminished 7th",
    ChordQuality.MINOR_MAJOR7: "Minor-Major 7th",
    ChordQuality.AUGMENTED7: "Augmented 7th",
}


@dataclass(frozen=True)
class ArpeggioPattern:
    quality: ChordQuality
    octave_span: int = 1
    direction: ArpeggioDirection = ArpeggioDirection.ASCENDING_DESCENDING

    def __post_init__(self) -> None:
        if not MIN_OCTAVES <= self.octave_span <= MAX_OCTAVES:
            raise ValueError(f"Arpeggio octave span must be {MIN_OCTAVES}-{MAX_OCTAVES}, got {self.octave_span}")

    def name(self, root: MusicalKey) -> str:
        octaves = "1 Octave" if self.octave_span == 1 else f"{self.octave_span} Octaves"
        return f"{root.display_name} {ARPEGGIO_NAMES[self.quality]} ({octaves})"

    def midi_notes(self, root: MusicalKey, start_octave: int = REFERENCE_OCTAVE) -> List[int]:
        return generate_arpeggio(root, self, start_octave)


def generate_arpeggio(
    root: MusicalKey,
    pattern: ArpeggioPattern,
    start_octave: int = REFERENCE_OCTAVE,
) -> List[int]:
    """Chord tones unrolled upwards over the span and closed on the top root.

    With a descending return the way back down does not repeat the top note.
    """
    base = root.midi_note(start_octave)
    ascending = [
        base + octave * SEMITONES_PER_OCTAVE + interval
        for octave in range(pattern.octave_span)
        for interval in pattern.quality.intervals
    ]
    ascending.append(base + pattern.octave_span * SEMITONES_PER_OCTAVE)
    if pattern.direction is ArpeggioDirection.ASCENDING:
        return ascending
    return ascending + ascending[-2::-1]
