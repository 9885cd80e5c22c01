from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

import mido

from config import DEFAULT_VELOCITY, VIRTUAL_NOTE_HOLD_MS
from midi_decoder import MidiEvent, MidiEventKind
from theory import detect_chord, midi_note_name

logger = logging.getLogger(__name__)

NoteCallback = Callable[[int], None]
TimerFactory = Callable[[float, Callable[[], None]], Any]


class HeldKeys:
    """Keys currently down, as the console shows them.

    Input handling writes and the view reads, so access goes through a lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._down: set[int] = set()

    def press(self, note: int) -> None:
        with self._lock:
            self._down.add(note)

    def release(self, note: int) -> None:
        with self._lock:
            self._down.discard(note)

    def update(self, event: MidiEvent) -> bool:
        """Track a decoded event; True when it put a key down."""
        if event.kind is MidiEventKind.NOTE_ON:
            self.press(event.note)
            return True
        if event.kind is MidiEventKind.NOTE_OFF:
            self.release(event.note)
        return False

    def notes(self) -> List[int]:
        with self._lock:
            return sorted(self._down)

    def clear(self) -> None:
        with self._lock:
            self._down.clear()

    def describe(self) -> str:
        """Held notes by name, plus the chord they spell when there is one."""
        notes = self.notes()
        text = " ".join(midi_note_name(n) for n in notes)
        chord = detect_chord(notes) if len(notes) >= 3 else None
        return f"{text} ({chord})" if chord else text


class VirtualNotePlayer:
    """Taps on an on-screen key: a note-on now and a note-off after ``hold_ms``.

    Each note number owns at most one pending release. Playing a note again
    replaces that note's timer and leaves the others running. ``on_note_pressed``
    runs on the caller's thread; ``on_note_released`` runs on the timer thread.
    """

    def __init__(
        self,
        output: Optional[Any] = None,
        channel: int = 0,
        velocity: int = DEFAULT_VELOCITY,
        hold_ms: int = VIRTUAL_NOTE_HOLD_MS,
        on_note_pressed: Optional[NoteCallback] = None,
        on_note_released: Optional[NoteCallback] = None,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self.output = output
        self.channel = channel
        self.velocity = velocity
        self.hold_ms = hold_ms
        self.on_note_pressed = on_note_pressed
        self.on_note_released = on_note_released
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timers: Dict[int, Tuple[object, Any]] = {}
        self._closed = False

    @property
    def pending_notes(self) -> List[int]:
        with self._lock:
            return sorted(self._timers)

    def _send(self, kind: str, note: int, velocity: int) -> None:
        if self.output is None:
            return
        try:
            self.output.send(mido.Message(kind, channel=self.channel, note=note, velocity=velocity))
        except Exception as exc:  # port went away; playback keeps going
            logger.warning("Failed to send %s for note %d: %s", kind, note, exc)

    def play(self, note: int) -> None:
        if not 0 <= note <= 127:
            raise ValueError(f"MIDI note out of range: {note}")
        token = object()
        timer = self._timer_factory(self.hold_ms / 1000.0, lambda: self._release(note, token))
        if hasattr(timer, "daemon"):
            timer.daemon = True
        with self._lock:
            if self._closed:
                raise RuntimeError("VirtualNotePlayer is closed")
            previous = self._timers.pop(note, None)
            self._timers[note] = (token, timer)
        if previous is not None:
            previous[1].cancel()

        self._send("note_on", note, self.velocity)
        logger.debug("Virtual note on %d", note)
        if self.on_note_pressed is not None:
            self.on_note_pressed(note)
        timer.start()

    def _release(self, note: int, token: object) -> None:
        with self._lock:
            current = self._timers.get(note)
            if current is None or current[0] is not token:
                return
            del self._timers[note]
        self._send("note_off", note, 0)
        logger.debug("Virtual note off %d", note)
        if self.on_note_released is not None:
            self.on_note_released(note)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            pending = list(self._timers.items())
            self._timers.clear()
        for note, (_, timer) in pending:
            timer.cancel()
            self._send("note_off", note, 0)

    def __enter__(self) -> "VirtualNotePlayer":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
