"""
Pitch classes, scales and chords.

Everything here is a pure function of its inputs: nothing keeps state about a
practice session, so the helpers can be shared freely between sessions and
tested without any MIDI device.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from config import REFERENCE_OCTAVE, SEMITONES_PER_OCTAVE

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]
FLAT_NAMES = ["C", "Db", "D", "Eb", "E", "F", "Gb", "G", "Ab", "A", "Bb", "B"]

_LETTER_OFFSETS = {"c": 0, "d": 2, "e": 4, "f": 5, "g": 7, "a": 9, "b": 11}


def midi_note_name(note: int) -> str:
    octave = note // SEMITONES_PER_OCTAVE - 1
    return f"{NOTE_NAMES[note % SEMITONES_PER_OCTAVE]}{octave}"


def midi_note(pitch_class: int, octave: int) -> int:
    return (octave + 1) * SEMITONES_PER_OCTAVE + pitch_class


def pitch_class(note: int) -> int:
    return note % SEMITONES_PER_OCTAVE


def parse_note_value(raw: object) -> int:
    """Parse a MIDI note number or a note-name string like C#4 / Db3."""
    if isinstance(raw, bool):
        raise ValueError(f"Unsupported note value: {raw}")
    if isinstance(raw, int):
        if 0 <= raw <= 127:
            return raw
        raise ValueError(f"MIDI note out of range: {raw}")
    if isinstance(raw, str):
        s = raw.strip()
        if not s:
            raise ValueError("Empty note string")
        if s.lstrip("-+").isdigit():
            return parse_note_value(int(s))
        m = re.match(r"^([A-Ga-g])([#b]?)(-?\d+)$", s)
        if not m:
            raise ValueError(f"Could not parse note: {s}")
        letter, accidental, octave_str = m.groups()
        base = _LETTER_OFFSETS[letter.lower()]
        if accidental == "#":
            base += 1
        elif accidental == "b":
            base -= 1
        val = SEMITONES_PER_OCTAVE * (int(octave_str) + 1) + base
        if not (0 <= val <= 127):
            raise ValueError(f"Note out of MIDI range: {s}")
        return val
    raise ValueError(f"Unsupported note value: {raw}")


class MusicalKey(Enum):
    """The twelve pitch classes; the value is the semitone offset from C."""

    C = 0
    D_FLAT = 1
    D = 2
    E_FLAT = 3
    E = 4
    F = 5
    G_FLAT = 6
    G = 7
    A_FLAT = 8
    A = 9
    B_FLAT = 10
    B = 11

    @property
    def display_name(self) -> str:
        return FLAT_NAMES[self.value]

    def midi_note(self, octave: int = REFERENCE_OCTAVE) -> int:
        return midi_note(self.value, octave)

    def transpose(self, semitones: int) -> "MusicalKey":
        return MusicalKey((self.value + semitones) % SEMITONES_PER_OCTAVE)

    @classmethod
    def parse(cls, raw: object) -> "MusicalKey":
        """Accept a key, a pitch class, a member name or a note name (C#, Db)."""
        if isinstance(raw, MusicalKey):
            return raw
        if isinstance(raw, int) and not isinstance(raw, bool):
            if 0 <= raw < SEMITONES_PER_OCTAVE:
                return cls(raw)
            raise ValueError(f"Pitch class out of range: {raw}")
        if isinstance(raw, str):
            s = raw.strip()
            if s.upper() in cls.__members__:
                return cls[s.upper()]
            m = re.match(r"^([A-Ga-g])([#b]?)$", s)
            if m:
                letter, accidental = m.groups()
                offset = _LETTER_OFFSETS[letter.lower()]
                offset += {"#": 1, "b": -1}.get(accidental, 0)
                return cls(offset % SEMITONES_PER_OCTAVE)
        raise ValueError(f"Unknown key: {raw!r}")


@dataclass(frozen=True)
class NotePosition:
    """A key on the keyboard as the presentation layer names it."""

    letter: str
    octave: int
    accidental: Optional[str] = None

    @classmethod
    def from_midi(cls, note: int) -> "NotePosition":
        name = NOTE_NAMES[pitch_class(note)]
        accidental = "#" if len(name) == 2 else None
        return cls(letter=name[0], octave=note // SEMITONES_PER_OCTAVE - 1, accidental=accidental)

    @property
    def midi(self) -> int:
        offset = _LETTER_OFFSETS[self.letter.lower()]
        if self.accidental == "#":
            offset += 1
        elif self.accidental == "b":
            offset -= 1
        return midi_note(offset, self.octave)

    def __str__(self) -> str:
        return f"{self.letter}{self.accidental or ''}{self.octave}"


# ---- Scales ----
class ScaleType(Enum):
    MAJOR = "major"
    MINOR = "minor"
    DORIAN = "dorian"
    PHRYGIAN = "phrygian"
    LYDIAN = "lydian"
    MIXOLYDIAN = "mixolydian"
    AEOLIAN = "aeolian"
    LOCRIAN = "locrian"
    HARMONIC_MINOR = "harmonic_minor"
    MELODIC_MINOR = "melodic_minor"


SCALE_INTERVALS: Dict[ScaleType, Tuple[int, ...]] = {
    ScaleType.MAJOR: (2, 2, 1, 2, 2, 2, 1),
    ScaleType.MINOR: (2, 1, 2, 2, 1, 2, 2),
    ScaleType.DORIAN: (2, 1, 2, 2, 2, 1, 2),
    ScaleType.PHRYGIAN: (1, 2, 2, 2, 1, 2, 2),
    ScaleType.LYDIAN: (2, 2, 2, 1, 2, 2, 1),
    ScaleType.MIXOLYDIAN: (2, 2, 1, 2, 2, 1, 2),
    ScaleType.AEOLIAN: (2, 1, 2, 2, 1, 2, 2),
    ScaleType.LOCRIAN: (1, 2, 2, 1, 2, 2, 2),
    ScaleType.HARMONIC_MINOR: (2, 1, 2, 2, 1, 3, 1),
    ScaleType.MELODIC_MINOR: (2, 1, 2, 2, 2, 2, 1),
}

SCALE_NAMES: Dict[ScaleType, str] = {
    ScaleType.MAJOR: "Major (Ionian)",
    ScaleType.MINOR: "Natural Minor",
    ScaleType.DORIAN: "Dorian",
    ScaleType.PHRYGIAN: "Phrygian",
    ScaleType.LYDIAN: "Lydian",
    ScaleType.MIXOLYDIAN: "Mixolydian",
    ScaleType.AEOLIAN: "Aeolian",
    ScaleType.LOCRIAN: "Locrian",
    ScaleType.HARMONIC_MINOR: "Harmonic Minor",
    ScaleType.MELODIC_MINOR: "Melodic Minor",
}


@dataclass(frozen=True)
class ScaleDefinition:
    key: MusicalKey
    scale_type: ScaleType
    intervals: Tuple[int, ...]

    @property
    def name(self) -> str:
        return f"{self.key.display_name} {SCALE_NAMES[self.scale_type]}"

    def pitch_classes(self) -> List[int]:
        """The seven degrees as pitch classes, tonic first."""
        pcs = [self.key.value]
        for step in self.intervals[:-1]:
            pcs.append((pcs[-1] + step) % SEMITONES_PER_OCTAVE)
        return pcs


def scale_definition(key: MusicalKey, scale_type: ScaleType) -> ScaleDefinition:
    return ScaleDefinition(key=key, scale_type=scale_type, intervals=SCALE_INTERVALS[scale_type])


def generate_scale(
    key: MusicalKey,
    scale_type: ScaleType,
    octaves: int = 1,
    start_octave: int = REFERENCE_OCTAVE,
) -> List[int]:
    """Ascending scale from the tonic, closed on the tonic an octave (or more) up.

    The result has ``len(intervals) * octaves + 1`` notes.
    """
    intervals = SCALE_INTERVALS[scale_type]
    note = key.midi_note(start_octave)
    notes = [note]
    for _ in range(octaves):
        for step in intervals:
            note += step
            notes.append(note)
    return notes


# ---- Chords ----
class ChordQuality(Enum):
    MAJOR = "major"
    MINOR = "minor"
    DIMINISHED = "diminished"
    AUGMENTED = "augmented"
    MAJOR7 = "major7"
    DOMINANT7 = "dominant7"
    MINOR7 = "minor7"
    HALF_DIMINISHED7 = "half_diminished7"
    DIMINISHED7 = "diminished7"
    MINOR_MAJOR7 = "minor_major7"
    AUGMENTED7 = "augmented7"

    @property
    def intervals(self) -> Tuple[int, ...]:
        return CHORD_INTERVALS[self]

    @property
    def symbol(self) -> str:
        return CHORD_SYMBOLS[self]

    @property
    def is_seventh(self) -> bool:
        return len(CHORD_INTERVALS[self]) == 4


CHORD_INTERVALS: Dict[ChordQuality, Tuple[int, ...]] = {
    ChordQuality.MAJOR: (0, 4, 7),
    ChordQuality.MINOR: (0, 3, 7),
    ChordQuality.DIMINISHED: (0, 3, 6),
    ChordQuality.AUGMENTED: (0, 4, 8),
    ChordQuality.MAJOR7: (0, 4, 7, 11),
    ChordQuality.DOMINANT7: (0, 4, 7, 10),
    ChordQuality.MINOR7: (0, 3, 7, 10),
    ChordQuality.HALF_DIMINISHED7: (0, 3, 6, 10),
    ChordQuality.DIMINISHED7: (0, 3, 6, 9),
    ChordQuality.MINOR_MAJOR7: (0, 3, 7, 11),
    ChordQuality.AUGMENTED7: (0, 4, 8, 10),
}

CHORD_SYMBOLS: Dict[ChordQuality, str] = {
    ChordQuality.MAJOR: "",
    ChordQuality.MINOR: "m",
    ChordQuality.DIMINISHED: "°",
    ChordQuality.AUGMENTED: "+",
    ChordQuality.MAJOR7: "maj7",
    ChordQuality.DOMINANT7: "7",
    ChordQuality.MINOR7: "m7",
    ChordQuality.HALF_DIMINISHED7: "ø7",
    ChordQuality.DIMINISHED7: "°7",
    ChordQuality.MINOR_MAJOR7: "m(maj7)",
    ChordQuality.AUGMENTED7: "aug7",
}

INVERSION_NAMES = ["", "1st inv", "2nd inv", "3rd inv"]


@dataclass(frozen=True)
class ChordInfo:
    root: MusicalKey
    quality: ChordQuality
    inversion: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.inversion < len(self.quality.intervals):
            raise ValueError(
                f"Inversion {self.inversion} is not valid for a {len(self.quality.intervals)}-note chord"
            )

    @property
    def name(self) -> str:
        base = f"{self.root.display_name}{self.quality.symbol}"
        if self.inversion:
            return f"{base} ({INVERSION_NAMES[self.inversion]})"
        return base

    @property
    def pitch_classes(self) -> FrozenSet[int]:
        return frozenset((self.root.value + i) % SEMITONES_PER_OCTAVE for i in self.quality.intervals)

    def with_inversion(self, inversion: int) -> "ChordInfo":
        return ChordInfo(self.root, self.quality, inversion)

    def midi_notes(self, octave: int = REFERENCE_OCTAVE) -> List[int]:
        """Ascending voicing with the root in ``octave``.

        Inversion n raises the lowest n notes of the root-position chord by an
        octave.
        """
        base = self.root.midi_note(octave)
        notes = [base + i for i in self.quality.intervals]
        for i in range(self.inversion):
            notes[i] += SEMITONES_PER_OCTAVE
        return sorted(notes)


def _stacked_third(pcs: List[int], degree: int, span: int) -> int:
    lower = pcs[(degree + span - 2) % 7]
    upper = pcs[(degree + span) % 7]
    return (upper - lower) % SEMITONES_PER_OCTAVE


_TRIAD_BY_THIRDS = {
    (4, 3): ChordQuality.MAJOR,
    (3, 4): ChordQuality.MINOR,
    (3, 3): ChordQuality.DIMINISHED,
    (4, 4): ChordQuality.AUGMENTED,
}

_SEVENTH_BY_TRIAD = {
    (ChordQuality.MAJOR, 4): ChordQuality.MAJOR7,
    (ChordQuality.MAJOR, 3): ChordQuality.DOMINANT7,
    (ChordQuality.MINOR, 4): ChordQuality.MINOR_MAJOR7,
    (ChordQuality.MINOR, 3): ChordQuality.MINOR7,
    (ChordQuality.DIMINISHED, 4): ChordQuality.HALF_DIMINISHED7,
    (ChordQuality.DIMINISHED, 3): ChordQuality.DIMINISHED7,
}


def triad_qualities_in_key(key: MusicalKey, scale_type: ScaleType) -> List[ChordQuality]:
    """Quality of the triad built on each of the seven degrees."""
    pcs = scale_definition(key, scale_type).pitch_classes()
    qualities = []
    for degree in range(7):
        thirds = (_stacked_third(pcs, degree, 2), _stacked_third(pcs, degree, 4))
        qualities.append(_TRIAD_BY_THIRDS.get(thirds, ChordQuality.MAJOR))
    return qualities


def seventh_qualities_in_key(key: MusicalKey, scale_type: ScaleType) -> List[ChordQuality]:
    pcs = scale_definition(key, scale_type).pitch_classes()
    qualities = []
    for degree, triad in enumerate(triad_qualities_in_key(key, scale_type)):
        if triad is ChordQuality.AUGMENTED:
            qualities.append(ChordQuality.AUGMENTED7)
            continue
        top = _stacked_third(pcs, degree, 6)
        qualities.append(_SEVENTH_BY_TRIAD.get((triad, top), ChordQuality.DOMINANT7))
    return qualities


def diatonic_chords(key: MusicalKey, scale_type: ScaleType, sevenths: bool = False) -> List[ChordInfo]:
    """Root-position chords on the seven scale degrees."""
    pcs = scale_definition(key, scale_type).pitch_classes()
    qualities = seventh_qualities_in_key(key, scale_type) if sevenths else triad_qualities_in_key(key, scale_type)
    return [ChordInfo(MusicalKey(pc), quality) for pc, quality in zip(pcs, qualities)]


def detect_chord(notes: List[int]) -> Optional[str]:
    """Name the chord formed by the given MIDI notes, ignoring octave and inversion.

    Seventh chords are tried before triads so that C-E-G-B reads as Cmaj7.
    """
    if not notes:
        return None
    pcs = {pitch_class(n) for n in notes}
    bass = pitch_class(min(notes))
    by_size = sorted(CHORD_INTERVALS.items(), key=lambda item: -len(item[1]))
    # the bass is tried first; this only picks the name for symmetric sets such as °7 and +
    roots = [bass] + sorted(pcs - {bass})
    for quality, intervals in by_size:
        for root in roots:
            target = {(root + i) % SEMITONES_PER_OCTAVE for i in intervals}
            if target == pcs:
                return ChordInfo(MusicalKey(root), quality).name
    return None
