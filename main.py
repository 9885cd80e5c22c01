"""
Terminal piano practice: scales, chords, progressions and arpeggios.

Connect a MIDI keyboard (or play a .mid file, or type note names) and the
session shows which keys to press next, advancing as you play them.

Settings file (YAML or JSON), any subset of:

    mode: chords_progression        # scales | chords_single | chords_progression
                                    # | chords_by_type | arpeggios
    key: G
    scale_type: major
    progression: "ii - V - I"       # or leave out for the diatonic chords
    sevenths: false                 # diatonic sevenths instead of triads
    hand: right                     # left | right | both
    require_exact: false

Dependencies:
  pip install mido python-rtmidi pyyaml

Usage:
  python main.py [--settings practice.yaml] [--mode scales] [--key D] \
      [--hand both] [--virtual] [--out SYNTH] [port substring | midi_file.mid]

- If a .mid file path is given, plays that file into the session.
- Otherwise opens the first MIDI input port containing the substring (or the first port).
- With --virtual, note names typed on stdin (``C4 E4 G4``) are tapped like on-screen keys;
  ``reset`` restarts and ``quit`` exits.
- Pressing A0 on the keyboard restarts the current exercise.
"""

from __future__ import annotations

import argparse
import logging
import os
import queue
import sys
import threading
import time
from typing import Any, Dict, List, Optional, TextIO, Tuple

import mido

from arpeggios import ArpeggioDirection
from config import LOG_FORMAT, RESET_NOTE
from midi_decoder import MidiEvent, MidiEventKind, decode_message
from progression import ProgressionDifficulty, progressions_for_difficulty
from session import HandSelection, PracticeMode, PracticeSession
from settings import PracticeSettings, load_settings
from streaming import HeldKeys, VirtualNotePlayer
from theory import ChordQuality, NotePosition, ScaleType, parse_note_value

logger = logging.getLogger(__name__)

Item = Tuple[str, Any]


def pick_port(preferred: Optional[str] = None) -> Optional[str]:
    ports = mido.get_input_names()
    if not ports:
        print("No MIDI input ports found. Connect a keyboard or enable a virtual port (IAC on macOS).")
        return None
    if preferred:
        for name in ports:
            if preferred.lower() in name.lower():
                return name
    return ports[0]


def pick_output_port(preferred: str) -> Optional[str]:
    for name in mido.get_output_names():
        if preferred.lower() in name.lower():
            return name
    print(f"No MIDI output port matches {preferred!r}; virtual taps stay silent.")
    return None


def route_message(msg: mido.Message, events: "queue.Queue[Item]") -> None:
    event = decode_message(msg)
    if event is None:
        return
    if event.kind in (MidiEventKind.NOTE_ON, MidiEventKind.NOTE_OFF) and event.note == RESET_NOTE:
        if event.kind is MidiEventKind.NOTE_ON:  # A0 as reset trigger
            events.put(("reset", None))
        return
    events.put(("event", event))


def listener_thread(port_name: str, events: "queue.Queue[Item]", stop_flag: threading.Event) -> None:
    with mido.open_input(port_name) as port:
        logger.info("Listening on %s", port_name)
        for msg in port:
            if stop_flag.is_set():
                break
            route_message(msg, events)


def file_player_thread(file_path: str, events: "queue.Queue[Item]", stop_flag: threading.Event) -> None:
    mid = mido.MidiFile(file_path)
    for msg in mid:
        if stop_flag.is_set():
            break
        time.sleep(msg.time)
        route_message(msg, events)
    logger.info("Finished playing %s", file_path)
    events.put(("done", None))


def stdin_thread(events: "queue.Queue[Item]", stop_flag: threading.Event, stream: TextIO = sys.stdin) -> None:
    for line in stream:
        if stop_flag.is_set():
            break
        words = line.split()
        if not words:
            continue
        command = words[0].lower()
        if command in ("reset", "r"):
            events.put(("reset", None))
            continue
        if command in ("quit", "q", "exit"):
            break
        for word in words:
            try:
                events.put(("tap", parse_note_value(word)))
            except ValueError as exc:
                print(f"  {exc}")
    events.put(("quit", None))


# ---- Console output ----
def format_positions(positions: List[NotePosition]) -> str:
    return " ".join(str(p) for p in positions)


class ConsoleView:
    def __init__(self, held: Optional[HeldKeys] = None) -> None:
        self.session: Optional[PracticeSession] = None
        self.held = held if held is not None else HeldKeys()

    def on_highlighted_notes_changed(self, positions: List[NotePosition]) -> None:
        if self.session is None or not self.session.is_active or not positions:
            return
        status = self.session.status()
        line = f"[{status.index + 1}/{status.total}] {status.current_label}: {format_positions(positions)}"
        if status.upcoming_labels:
            line += f"   then {' | '.join(status.upcoming_labels)}"
        print(line)

    def on_key_pressed(self) -> None:
        """In chord modes, echo what is held so a wrong voicing is visible."""
        if self.session is None or not self.session.is_active or not self.session.mode.is_chord_mode:
            return
        held = self.held.describe()
        if held:
            print(f"  holding {held}")

    def on_exercise_completed(self) -> None:
        name = self.session.exercise_name if self.session else "exercise"
        print(f"Completed {name}! Press A0 or type 'reset' to go again.")


# ---- Entry point ----
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="MIDI piano practice: scales, chords and arpeggios")
    parser.add_argument("target", nargs="?", help="Port substring or .mid file")
    parser.add_argument("--settings", help="YAML/JSON file with practice settings")
    parser.add_argument("--mode", choices=[m.value for m in PracticeMode])
    parser.add_argument("--key", help="Key for scales and chord modes (C, F#, Bb, ...)")
    parser.add_argument("--scale-type", choices=[s.value for s in ScaleType])
    parser.add_argument("--root", help="Root note for arpeggios")
    parser.add_argument("--quality", choices=[q.value for q in ChordQuality], help="Chord/arpeggio quality")
    parser.add_argument("--octaves", type=int, help="Octaves for scales and arpeggios (1-3)")
    parser.add_argument("--direction", choices=[d.value for d in ArpeggioDirection])
    parser.add_argument("--no-inversions", action="store_true", help="Root position only for chords by type")
    parser.add_argument("--hand", choices=[h.value for h in HandSelection])
    parser.add_argument("--progression", help="Named progression, e.g. 'ii - V - I'")
    parser.add_argument("--require-exact", action="store_true", help="Fail chords with extra keys held")
    parser.add_argument("--sevenths", action="store_true", help="Seventh chords for the diatonic progression")
    parser.add_argument("--virtual", action="store_true", help="Tap notes typed on stdin")
    parser.add_argument("--out", help="Output port substring for virtual taps")
    parser.add_argument("--list-ports", action="store_true", help="Show MIDI ports and exit")
    parser.add_argument("--list-progressions", action="store_true", help="Show named progressions and exit")
    parser.add_argument("--log-level", default="WARNING", help="DEBUG, INFO, WARNING or ERROR")
    return parser


def build_settings(args: argparse.Namespace) -> PracticeSettings:
    """File settings (if any) with the command-line flags laid over them."""
    settings = load_settings(args.settings) if args.settings else PracticeSettings()
    overrides: Dict[str, object] = {}
    if args.mode:
        overrides["mode"] = args.mode
    if args.key:
        overrides["key"] = args.key
    if args.scale_type:
        overrides["scale_type"] = args.scale_type
    if args.root:
        overrides["root_note"] = args.root
    if args.quality:
        overrides["chord_quality"] = args.quality
        overrides["arpeggio_quality"] = args.quality
    if args.octaves is not None:
        overrides["scale_octaves"] = args.octaves
        overrides["arpeggio_octaves"] = args.octaves
    if args.direction:
        overrides["arpeggio_direction"] = args.direction
    if args.no_inversions:
        overrides["include_inversions"] = False
    if args.hand:
        overrides["hand"] = args.hand
    if args.progression:
        overrides["progression"] = args.progression
    if args.require_exact:
        overrides["require_exact"] = True
    if args.sevenths:
        overrides["sevenths"] = True
    return settings.merged(overrides)


def list_ports() -> None:
    print("Inputs:")
    for name in mido.get_input_names():
        print(f"  {name}")
    print("Outputs:")
    for name in mido.get_output_names():
        print(f"  {name}")


def list_progressions() -> None:
    for difficulty in ProgressionDifficulty:
        print(f"{difficulty.value.title()}:")
        for progression in progressions_for_difficulty(difficulty):
            print(f"  {progression.name:<18} {progression.description}")


def run(
    session: PracticeSession,
    events: "queue.Queue[Item]",
    player: VirtualNotePlayer,
    held: HeldKeys,
    view: Optional[ConsoleView] = None,
) -> None:
    """Drain the event queue on this thread; the only caller of ``session``."""
    while True:
        kind, payload = events.get()
        if kind in ("quit", "done"):
            break
        if kind == "reset":
            held.clear()
            session.reset_practice()
            session.start_practice()
        elif kind == "event":
            event: MidiEvent = payload
            if held.update(event) and view is not None:
                view.on_key_pressed()
            session.handle_midi_event(event)
        elif kind == "tap":
            player.play(payload)
        elif kind == "release":
            held.release(payload)
            session.handle_note_released(payload)


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format=LOG_FORMAT)

    if args.list_ports:
        list_ports()
        return
    if args.list_progressions:
        list_progressions()
        return

    try:
        settings = build_settings(args)
    except (OSError, ValueError) as exc:
        print(f"Invalid settings: {exc}")
        sys.exit(2)

    file_mode = bool(args.target and os.path.isfile(args.target) and args.target.lower().endswith(".mid"))
    port_name = None
    if not file_mode and not (args.virtual and not args.target):
        port_name = pick_port(args.target)
        if not port_name:
            return

    held = HeldKeys()
    view = ConsoleView(held)
    session = PracticeSession(view.on_highlighted_notes_changed, view.on_exercise_completed)
    view.session = session
    settings.apply(session)

    events: "queue.Queue[Item]" = queue.Queue()
    stop_flag = threading.Event()

    output = None
    if args.out:
        out_name = pick_output_port(args.out)
        output = mido.open_output(out_name) if out_name else None

    def tap_pressed(note: int) -> None:
        held.press(note)
        view.on_key_pressed()
        session.handle_note_pressed(note)

    player = VirtualNotePlayer(
        output=output,
        on_note_pressed=tap_pressed,
        on_note_released=lambda note: events.put(("release", note)),
    )

    threads = []
    if file_mode and args.target:
        threads.append(threading.Thread(target=file_player_thread, args=(args.target, events, stop_flag), daemon=True))
    elif port_name:
        threads.append(threading.Thread(target=listener_thread, args=(port_name, events, stop_flag), daemon=True))
    if args.virtual:
        threads.append(threading.Thread(target=stdin_thread, args=(events, stop_flag), daemon=True))

    note_range = session.display_range()
    print(f"{session.exercise_name} ({session.hand.value} hand)")
    print(f"Keyboard: {note_range.lowest_position} - {note_range.highest_position} ({note_range.key_count} keys)")
    session.start_practice()
    for t in threads:
        t.start()

    try:
        run(session, events, player, held, view)
    except KeyboardInterrupt:
        pass
    finally:
        stop_flag.set()
        player.close()
        if output is not None:
            output.close()
        for t in threads:
            t.join(timeout=1)


if __name__ == "__main__":
    main()
