"""
The practice session state machine.

A session holds one exercise, either a flat note sequence (scales, arpeggios)
or a list of chords (the chord modes), and advances through it as decoded
note-on/note-off events arrive:

    IDLE --start_practice()--> ACTIVE --last note/chord--> COMPLETED
      ^                                                       |
      +---------------------- reset_practice() ---------------+

The presentation layer sees the session only through two callbacks: the
highlighted notes (the keys to play next) and the completion signal, which
fires once per traversal. A session is owned by a single thread; it does no
locking of its own.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterator, List, Optional, Sequence, Tuple

from arpeggios import ArpeggioDirection, ArpeggioPattern, generate_arpeggio
from config import MAX_OCTAVES, MIN_OCTAVES, REFERENCE_OCTAVE, SEMITONES_PER_OCTAVE, UPCOMING_LABELS
from midi_decoder import MidiEvent, MidiEventKind
from progression import (
    ProgressionChord,
    chords_by_key,
    chords_by_type,
    generate_chord_progression,
    get_progression,
)
from range_selector import NoteRange, select_range
from theory import (
    ChordQuality,
    MusicalKey,
    NotePosition,
    ScaleType,
    generate_scale,
    midi_note_name,
    pitch_class,
    scale_definition,
)

logger = logging.getLogger(__name__)

HighlightCallback = Callable[[List[NotePosition]], None]
CompletionCallback = Callable[[], None]


class PracticeMode(Enum):
    SCALES = "scales"
    CHORDS_SINGLE = "chords_single"
    CHORDS_PROGRESSION = "chords_progression"
    CHORDS_BY_TYPE = "chords_by_type"
    ARPEGGIOS = "arpeggios"

    @property
    def is_chord_mode(self) -> bool:
        return self in (PracticeMode.CHORDS_SINGLE, PracticeMode.CHORDS_PROGRESSION, PracticeMode.CHORDS_BY_TYPE)


class HandSelection(Enum):
    LEFT = "left"
    RIGHT = "right"
    BOTH = "both"


class SessionState(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass
class ProgressStatus:
    mode: PracticeMode
    state: SessionState
    index: int
    total: int
    done: bool
    expected_notes: List[int]
    held_notes: List[int]
    current_label: str
    upcoming_labels: List[str] = field(default_factory=list)


# ---- Setting validation ----
def _coerce_enum(enum_cls: Any, value: object) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"Invalid {enum_cls.__name__}: {value!r} (choose from {choices})") from None


def _coerce_octaves(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Octave count must be an integer, got {value!r}")
    if not MIN_OCTAVES <= value <= MAX_OCTAVES:
        raise ValueError(f"Octave count must be {MIN_OCTAVES}-{MAX_OCTAVES}, got {value}")
    return value


def _coerce_flag(value: object) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Expected true/false, got {value!r}")
    return value


def _coerce_progression(value: object) -> Optional[str]:
    if value is None:
        return None
    return get_progression(str(value)).name


_SETTINGS: Dict[str, Callable[[object], Any]] = {
    "mode": lambda v: _coerce_enum(PracticeMode, v),
    "key": MusicalKey.parse,
    "scale_type": lambda v: _coerce_enum(ScaleType, v),
    "scale_octaves": _coerce_octaves,
    "root_note": MusicalKey.parse,
    "chord_quality": lambda v: _coerce_enum(ChordQuality, v),
    "include_inversions": _coerce_flag,
    "arpeggio_quality": lambda v: _coerce_enum(ChordQuality, v),
    "arpeggio_octaves": _coerce_octaves,
    "arpeggio_direction": lambda v: _coerce_enum(ArpeggioDirection, v),
    "hand": lambda v: _coerce_enum(HandSelection, v),
    "progression": _coerce_progression,
    "require_exact": _coerce_flag,
    "sevenths": _coerce_flag,
}


def validate_settings(changes: Dict[str, object]) -> Dict[str, Any]:
    """Check and normalise practice settings; raises ValueError on the first bad one."""
    unknown = sorted(set(changes) - set(_SETTINGS))
    if unknown:
        raise ValueError(f"Unknown practice settings: {', '.join(unknown)}")
    return {name: _SETTINGS[name](value) for name, value in changes.items()}


class PracticeSession:
    def __init__(
        self,
        on_highlighted_notes_changed: Optional[HighlightCallback] = None,
        on_exercise_completed: Optional[CompletionCallback] = None,
        start_octave: int = REFERENCE_OCTAVE,
    ) -> None:
        self._on_highlighted_notes_changed = on_highlighted_notes_changed
        self._on_exercise_completed = on_exercise_completed
        self.start_octave = start_octave

        self._mode = PracticeMode.SCALES
        self._key = MusicalKey.C
        self._scale_type = ScaleType.MAJOR
        self._scale_octaves = 1
        self._root_note = MusicalKey.C
        self._chord_quality = ChordQuality.MAJOR
        self._include_inversions = True
        self._arpeggio_quality = ChordQuality.MAJOR
        self._arpeggio_octaves = 1
        self._arpeggio_direction = ArpeggioDirection.ASCENDING_DESCENDING
        self._hand = HandSelection.RIGHT
        self._progression: Optional[str] = None
        self._require_exact = False
        self._sevenths = False

        self._state = SessionState.IDLE
        self._sequence: List[int] = []
        self._index = 0
        self._chords: List[ProgressionChord] = []
        self._chord_index = 0
        self._held: set[int] = set()
        self._pressed: set[int] = set()
        self._dispatching = 0

        self._initialize_sequence()

    # ---- Read-only views ----
    @property
    def mode(self) -> PracticeMode:
        return self._mode

    @property
    def key(self) -> MusicalKey:
        return self._key

    @property
    def scale_type(self) -> ScaleType:
        return self._scale_type

    @property
    def scale_octaves(self) -> int:
        return self._scale_octaves

    @property
    def root_note(self) -> MusicalKey:
        return self._root_note

    @property
    def chord_quality(self) -> ChordQuality:
        return self._chord_quality

    @property
    def include_inversions(self) -> bool:
        return self._include_inversions

    @property
    def arpeggio_pattern(self) -> ArpeggioPattern:
        return ArpeggioPattern(self._arpeggio_quality, self._arpeggio_octaves, self._arpeggio_direction)

    @property
    def hand(self) -> HandSelection:
        return self._hand

    @property
    def progression(self) -> Optional[str]:
        return self._progression

    @property
    def require_exact(self) -> bool:
        return self._require_exact

    @property
    def sevenths(self) -> bool:
        return self._sevenths

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SessionState.ACTIVE

    @property
    def current_sequence(self) -> Tuple[int, ...]:
        return tuple(self._sequence)

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def current_chord_progression(self) -> Tuple[ProgressionChord, ...]:
        return tuple(self._chords)

    @property
    def current_chord_index(self) -> int:
        return self._chord_index

    @property
    def held_notes(self) -> FrozenSet[int]:
        return frozenset(self._held)

    @property
    def exercise_name(self) -> str:
        mode = self._mode
        if mode is PracticeMode.SCALES:
            return scale_definition(self._key, self._scale_type).name
        if mode is PracticeMode.ARPEGGIOS:
            return self.arpeggio_pattern.name(self._root_note)
        if mode is PracticeMode.CHORDS_SINGLE:
            return f"{scale_definition(self._key, self._scale_type).name} chords"
        if mode is PracticeMode.CHORDS_PROGRESSION:
            if self._progression:
                return f"{self._progression} in {self._key.display_name}"
            kind = "seventh progression" if self._sevenths else "progression"
            return f"{scale_definition(self._key, self._scale_type).name} {kind}"
        if mode is PracticeMode.CHORDS_BY_TYPE:
            suffix = " (with inversions)" if self._include_inversions else ""
            return f"{self._chord_quality.value.replace('_', ' ').title()} chords{suffix} - All 12 Keys"
        raise ValueError(f"Unhandled practice mode: {mode}")

    # ---- Configuration ----
    def configure(self, **changes: object) -> None:
        """Apply one or more settings, regenerate the exercise and go idle.

        Values are validated before anything changes, so a rejected call
        leaves the session as it was.
        """
        if self._dispatching:
            raise RuntimeError("Practice settings cannot change while session callbacks are running")
        validated = validate_settings(changes)

        self._state = SessionState.IDLE
        for name, value in validated.items():
            setattr(self, f"_{name}", value)
        logger.info("Practice settings changed: %s", ", ".join(f"{k}={v}" for k, v in validated.items()))
        self._initialize_sequence()

    def set_practice_mode(self, mode: object) -> None:
        self.configure(mode=mode)

    def set_selected_key(self, key: object) -> None:
        self.configure(key=key)

    def set_selected_scale_type(self, scale_type: object) -> None:
        self.configure(scale_type=scale_type)

    def set_scale_octaves(self, octaves: object) -> None:
        self.configure(scale_octaves=octaves)

    def set_selected_root_note(self, root_note: object) -> None:
        self.configure(root_note=root_note)

    def set_selected_chord_quality(self, quality: object) -> None:
        self.configure(chord_quality=quality)

    def set_include_inversions(self, include_inversions: object) -> None:
        self.configure(include_inversions=include_inversions)

    def set_selected_arpeggio_type(self, quality: object) -> None:
        self.configure(arpeggio_quality=quality)

    def set_selected_arpeggio_octaves(self, octaves: object) -> None:
        self.configure(arpeggio_octaves=octaves)

    def set_arpeggio_direction(self, direction: object) -> None:
        self.configure(arpeggio_direction=direction)

    def set_selected_hand(self, hand: object) -> None:
        self.configure(hand=hand)

    def set_selected_progression(self, name: Optional[str]) -> None:
        self.configure(progression=name)

    def set_require_exact(self, require_exact: object) -> None:
        self.configure(require_exact=require_exact)

    def set_sevenths(self, sevenths: object) -> None:
        self.configure(sevenths=sevenths)

    # ---- Exercise generation ----
    def _build_exercise(self) -> Tuple[List[int], List[ProgressionChord]]:
        mode = self._mode
        octave = self.start_octave
        if mode is PracticeMode.SCALES:
            notes = generate_scale(self._key, self._scale_type, self._scale_octaves, octave)
            return self._scalar_for_hand(notes), []
        if mode is PracticeMode.ARPEGGIOS:
            notes = generate_arpeggio(self._root_note, self.arpeggio_pattern, octave)
            return self._scalar_for_hand(notes), []
        if mode is PracticeMode.CHORDS_SINGLE:
            chords = chords_by_key(self._key, self._scale_type, octave)
        elif mode is PracticeMode.CHORDS_PROGRESSION:
            if self._progression:
                chords = get_progression(self._progression).generate(self._key, octave)
            else:
                chords = generate_chord_progression(self._key, self._scale_type, octave, sevenths=self._sevenths)
        elif mode is PracticeMode.CHORDS_BY_TYPE:
            chords = chords_by_type(self._chord_quality, self._include_inversions, octave)
        else:
            raise ValueError(f"Unhandled practice mode: {mode}")
        sequence = [note for chord in chords for note in self._chord_for_hand(chord)]
        return sequence, chords

    def _scalar_for_hand(self, notes: Sequence[int]) -> List[int]:
        if self._hand is HandSelection.RIGHT:
            return list(notes)
        if self._hand is HandSelection.LEFT:
            return [n - SEMITONES_PER_OCTAVE for n in notes]
        paired = []
        for n in notes:
            paired.extend((n - SEMITONES_PER_OCTAVE, n))
        return paired

    def _chord_for_hand(self, chord: ProgressionChord) -> List[int]:
        notes = chord.midi_notes()
        lower = [n - SEMITONES_PER_OCTAVE for n in notes if n >= SEMITONES_PER_OCTAVE]
        if self._hand is HandSelection.RIGHT:
            return notes
        if self._hand is HandSelection.LEFT:
            return lower
        return lower + notes

    def _initialize_sequence(self) -> None:
        self._sequence, self._chords = self._build_exercise()
        self._index = 0
        self._chord_index = 0
        self._held.clear()
        self._pressed.clear()
        logger.debug("Exercise %r has %d notes", self.exercise_name, len(self._sequence))
        self._update_highlighted_notes()

    # ---- Lifecycle ----
    def start_practice(self) -> None:
        if not self._sequence:
            logger.warning("Cannot start %r: the exercise has no notes", self.exercise_name)
            self._state = SessionState.IDLE
            return
        self._state = SessionState.ACTIVE
        self._index = 0
        self._chord_index = 0
        self._held.clear()
        self._pressed.clear()
        logger.info("Practice started: %s", self.exercise_name)
        self._update_highlighted_notes()

    def reset_practice(self) -> None:
        self._state = SessionState.IDLE
        self._index = 0
        self._chord_index = 0
        self._held.clear()
        self._pressed.clear()
        logger.info("Practice reset")
        self._update_highlighted_notes()

    # ---- Expected notes ----
    def expected_notes(self) -> List[int]:
        """The notes the performer has to produce next; empty once completed."""
        if self._state is SessionState.COMPLETED or not self._sequence:
            return []
        if self._mode.is_chord_mode:
            if self._chord_index < len(self._chords):
                return self._chord_for_hand(self._chords[self._chord_index])
            return []
        if self._index >= len(self._sequence):
            return []
        if self._hand is HandSelection.BOTH:
            return self._sequence[self._index:self._index + 2]
        return [self._sequence[self._index]]

    def notes_for_range(self) -> List[int]:
        if self._mode.is_chord_mode:
            return sorted({n for chord in self._chords for n in self._chord_for_hand(chord)})
        return list(self._sequence)

    def display_range(self) -> NoteRange:
        return select_range(self.notes_for_range())

    def _label_at(self, position: int) -> Optional[str]:
        if self._mode.is_chord_mode:
            if position < len(self._chords):
                return self._chords[position].name
            return None
        step = 2 if self._hand is HandSelection.BOTH else 1
        start = position * step
        notes = self._sequence[start:start + step]
        if not notes:
            return None
        return " + ".join(midi_note_name(n) for n in notes)

    def status(self) -> ProgressStatus:
        if self._mode.is_chord_mode:
            index, total = self._chord_index, len(self._chords)
        else:
            step = 2 if self._hand is HandSelection.BOTH else 1
            index, total = self._index // step, len(self._sequence) // step
        done = self._state is SessionState.COMPLETED
        upcoming = []
        for position in range(index + 1, index + 1 + UPCOMING_LABELS):
            label = self._label_at(position)
            if label is None:
                break
            upcoming.append(label)
        return ProgressStatus(
            mode=self._mode,
            state=self._state,
            index=index,
            total=total,
            done=done,
            expected_notes=self.expected_notes(),
            held_notes=sorted(self._held),
            current_label="Done" if done else (self._label_at(index) or ""),
            upcoming_labels=[] if done else upcoming,
        )

    # ---- Callbacks ----
    @contextmanager
    def _dispatch(self) -> Iterator[None]:
        self._dispatching += 1
        try:
            yield
        finally:
            self._dispatching -= 1

    def _update_highlighted_notes(self) -> None:
        if self._on_highlighted_notes_changed is None:
            return
        positions = [NotePosition.from_midi(n) for n in self.expected_notes()]
        with self._dispatch():
            self._on_highlighted_notes_changed(positions)

    def _complete_exercise(self) -> None:
        self._state = SessionState.COMPLETED
        self._held.clear()
        self._pressed.clear()
        logger.info("Exercise completed: %s", self.exercise_name)
        self._update_highlighted_notes()
        if self._on_exercise_completed is not None:
            with self._dispatch():
                self._on_exercise_completed()

    # ---- Input ----
    def handle_midi_event(self, event: MidiEvent) -> None:
        if event.kind is MidiEventKind.NOTE_ON:
            self.handle_note_pressed(event.note)
        elif event.kind is MidiEventKind.NOTE_OFF:
            self.handle_note_released(event.note)

    def handle_note_pressed(self, midi_note: int) -> None:
        if self._state is not SessionState.ACTIVE or not self._sequence:
            return
        if self._mode.is_chord_mode:
            self._press_chord_note(midi_note)
        elif self._hand is HandSelection.BOTH:
            self._press_paired_note(midi_note)
        else:
            self._press_single_note(midi_note)

    def handle_note_released(self, midi_note: int) -> None:
        if self._state is not SessionState.ACTIVE:
            return
        self._held.discard(midi_note)
        self._pressed.discard(midi_note)
        if self._mode.is_chord_mode:
            self._check_chord_completion()

    def _advance_note(self, step: int) -> None:
        self._index += step
        self._held.clear()
        logger.debug("Note advance to %d/%d", self._index, len(self._sequence))
        if self._index >= len(self._sequence):
            self._complete_exercise()
        else:
            self._update_highlighted_notes()

    def _press_single_note(self, midi_note: int) -> None:
        if midi_note == self._sequence[self._index]:
            self._advance_note(1)

    def _press_paired_note(self, midi_note: int) -> None:
        pair = self._sequence[self._index:self._index + 2]
        if len(pair) < 2 or midi_note not in pair:
            return
        self._held.add(midi_note)
        if all(n in self._held for n in pair):
            self._advance_note(2)

    def _press_chord_note(self, midi_note: int) -> None:
        if self._chord_index >= len(self._chords):
            return
        expected = self._chord_for_hand(self._chords[self._chord_index])
        self._pressed.add(midi_note)
        if pitch_class(midi_note) in {pitch_class(n) for n in expected}:
            self._held.add(midi_note)
        self._check_chord_completion()

    def _check_chord_completion(self) -> None:
        if self._chord_index >= len(self._chords):
            return
        expected = set(self._chord_for_hand(self._chords[self._chord_index]))
        if self._require_exact:
            complete = self._pressed == expected
        else:
            # extra keys held alongside the chord do not block it
            complete = expected <= self._held
        if not complete:
            return

        self._chord_index += 1
        self._held.clear()
        self._pressed.clear()
        logger.debug("Chord advance to %d/%d", self._chord_index, len(self._chords))
        if self._chord_index >= len(self._chords):
            self._complete_exercise()
        else:
            self._update_highlighted_notes()
