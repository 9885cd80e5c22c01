import pytest

from midi_decoder import decode
from range_selector import NoteRange
from session import HandSelection, PracticeMode, PracticeSession, SessionState
from theory import MusicalKey


class Recorder:
    def __init__(self):
        self.highlights = []
        self.completions = 0

    def on_highlight(self, positions):
        self.highlights.append([p.midi for p in positions])

    def on_complete(self):
        self.completions += 1


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def session(recorder):
    return PracticeSession(recorder.on_highlight, recorder.on_complete)


def play(session, *notes):
    for note in notes:
        session.handle_note_pressed(note)
        session.handle_note_released(note)


def test_defaults(session):
    assert session.mode is PracticeMode.SCALES
    assert session.key is MusicalKey.C
    assert session.hand is HandSelection.RIGHT
    assert session.state is SessionState.IDLE
    assert session.current_sequence == (60, 62, 64, 65, 67, 69, 71, 72)


def test_c_major_scale_completes_once(session, recorder):
    session.start_practice()
    assert session.is_active
    for i, note in enumerate([60, 62, 64, 65, 67, 69, 71, 72]):
        assert recorder.completions == 0
        play(session, note)
        assert session.current_index == i + 1
    assert recorder.completions == 1
    assert session.state is SessionState.COMPLETED
    assert not session.is_active
    assert recorder.highlights[-1] == []

    play(session, 60)
    assert recorder.completions == 1


def test_out_of_order_note_does_not_advance(session):
    session.start_practice()
    play(session, 60, 64)
    assert session.current_index == 1
    play(session, 62)
    assert session.current_index == 2


def test_presses_ignored_while_idle(session):
    play(session, 60)
    assert session.current_index == 0


def test_highlight_follows_expected_note(session, recorder):
    session.start_practice()
    assert recorder.highlights[-1] == [60]
    play(session, 60)
    assert recorder.highlights[-1] == [62]


def test_c_major_chord_needs_all_tones_held(session):
    session.set_practice_mode(PracticeMode.CHORDS_BY_TYPE)
    session.start_practice()
    session.handle_note_pressed(60)
    session.handle_note_pressed(64)
    assert session.current_chord_index == 0
    assert session.held_notes == {60, 64}
    session.handle_note_pressed(67)
    assert session.current_chord_index == 1
    assert session.held_notes == frozenset()


def test_released_note_must_be_pressed_again(session):
    session.set_practice_mode("chords_by_type")
    session.start_practice()
    session.handle_note_pressed(60)
    session.handle_note_pressed(64)
    session.handle_note_released(60)
    session.handle_note_pressed(67)
    assert session.current_chord_index == 0
    session.handle_note_pressed(60)
    assert session.current_chord_index == 1


def test_extra_held_notes_do_not_block_chord(session):
    session.set_practice_mode("chords_by_type")
    session.start_practice()
    for note in (62, 60, 64, 67):
        session.handle_note_pressed(note)
    assert session.current_chord_index == 1


def test_require_exact_rejects_extra_notes(session):
    session.configure(mode="chords_by_type", require_exact=True)
    session.start_practice()
    for note in (62, 60, 64, 67):
        session.handle_note_pressed(note)
    assert session.current_chord_index == 0
    session.handle_note_released(62)
    assert session.current_chord_index == 1


def test_chord_progression_completes(session, recorder):
    session.set_practice_mode(PracticeMode.CHORDS_PROGRESSION)
    session.start_practice()
    chords = session.current_chord_progression
    assert len(chords) == 7
    for step in chords:
        for note in step.midi_notes():
            session.handle_note_pressed(note)
        for note in step.midi_notes():
            session.handle_note_released(note)
    assert recorder.completions == 1
    assert session.current_chord_index == 7
    assert session.state is SessionState.COMPLETED


def test_named_progression(session):
    session.configure(mode="chords_progression", progression="ii - V - I")
    assert [c.chord.name for c in session.current_chord_progression] == ["Dm", "G (2nd inv)", "C (1st inv)"]
    assert session.expected_notes() == [62, 65, 69]
    with pytest.raises(ValueError):
        session.set_selected_progression("nope")


def test_seventh_chord_progression(session):
    session.configure(mode="chords_progression", sevenths=True)
    assert session.sevenths
    assert len(session.current_chord_progression) == 7
    assert session.expected_notes() == [60, 64, 67, 71]
    assert session.exercise_name.endswith("seventh progression")
    session.start_practice()
    for note in (60, 64, 67):
        session.handle_note_pressed(note)
    assert session.current_chord_index == 0
    session.handle_note_pressed(71)
    assert session.current_chord_index == 1
    session.set_sevenths(False)
    assert session.expected_notes() == [60, 64, 67]


def test_left_hand_plays_an_octave_lower(session):
    session.set_selected_hand("left")
    assert session.current_sequence[0] == 48
    session.start_practice()
    play(session, 60)
    assert session.current_index == 0
    play(session, 48)
    assert session.current_index == 1


def test_both_hands_advance_in_pairs(session, recorder):
    session.set_selected_hand(HandSelection.BOTH)
    assert session.current_sequence[:4] == (48, 60, 50, 62)
    session.start_practice()
    assert recorder.highlights[-1] == [48, 60]
    session.handle_note_pressed(48)
    assert session.current_index == 0
    session.handle_note_pressed(60)
    assert session.current_index == 2
    assert recorder.highlights[-1] == [50, 62]
    assert session.status().index == 1
    assert session.status().total == 8


def test_both_hands_chord(session):
    session.configure(mode="chords_by_type", hand="both")
    assert session.expected_notes() == [48, 52, 55, 60, 64, 67]
    session.start_practice()
    for note in (60, 64, 67):
        session.handle_note_pressed(note)
    assert session.current_chord_index == 0
    for note in (48, 52, 55):
        session.handle_note_pressed(note)
    assert session.current_chord_index == 1


def test_config_change_stops_and_regenerates(session):
    session.start_practice()
    play(session, 60, 62)
    session.set_selected_key("D")
    assert session.state is SessionState.IDLE
    assert session.current_index == 0
    assert session.current_sequence[0] == 62


def test_invalid_settings_leave_session_unchanged(session):
    before = session.current_sequence
    with pytest.raises(ValueError):
        session.set_scale_octaves(4)
    with pytest.raises(ValueError):
        session.configure(key="G", scale_octaves=0)
    with pytest.raises(ValueError):
        session.set_practice_mode("jazz")
    with pytest.raises(ValueError):
        session.configure(tempo=120)
    assert session.key is MusicalKey.C
    assert session.current_sequence == before


def test_configure_regenerates_once(session, recorder):
    recorder.highlights.clear()
    session.configure(mode="arpeggios", root_note="E", arpeggio_octaves=2, arpeggio_direction="ascending")
    assert len(recorder.highlights) == 1
    assert session.current_sequence == (64, 68, 71, 76, 80, 83, 88)
    assert session.exercise_name == "E Major (2 Octaves)"


def test_setter_during_callback_raises():
    holder = {}

    def on_complete():
        holder["session"].set_selected_key("G")

    session = PracticeSession(on_exercise_completed=on_complete)
    holder["session"] = session
    session.configure(mode="arpeggios", arpeggio_direction="ascending")
    session.start_practice()
    with pytest.raises(RuntimeError):
        play(session, 60, 64, 67, 72)
    assert session.key is MusicalKey.C


def test_restart_from_completion_callback():
    holder = {}

    def on_complete():
        holder["session"].reset_practice()
        holder["session"].start_practice()

    session = PracticeSession(on_exercise_completed=on_complete)
    holder["session"] = session
    session.set_practice_mode("arpeggios")
    session.start_practice()
    play(session, 60, 64, 67, 72, 67, 64, 60)
    assert session.is_active
    assert session.current_index == 0


def test_reset_is_idempotent(session):
    session.start_practice()
    play(session, 60)
    session.reset_practice()
    session.reset_practice()
    assert session.state is SessionState.IDLE
    assert session.current_index == 0
    assert session.expected_notes() == [60]


def test_status_labels(session):
    session.start_practice()
    status = session.status()
    assert status.current_label == "C4"
    assert status.upcoming_labels == ["D4", "E4", "F4"]
    assert not status.done

    session.set_practice_mode("chords_by_type")
    status = session.status()
    assert status.current_label == "C"
    assert status.upcoming_labels == ["C (1st inv)", "C (2nd inv)", "Db"]


def test_handle_midi_event(session):
    session.start_practice()
    session.handle_midi_event(decode([0xB0, 64, 127]))
    session.handle_midi_event(decode([0x90, 60, 80]))
    assert session.current_index == 1
    session.handle_midi_event(decode([0x80, 60, 0]))
    assert session.current_index == 1


def test_display_range(session):
    assert session.display_range() == NoteRange(36, 84)
    session.set_practice_mode("chords_single")
    assert session.display_range().covers(session.notes_for_range())
    assert len(session.current_chord_progression) == 21
