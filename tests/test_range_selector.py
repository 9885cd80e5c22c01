import logging

from progression import chords_by_key
from range_selector import NoteRange, select_range, select_range_for_progression
from theory import MusicalKey, ScaleType, generate_scale


def test_one_octave_c_major_scale():
    selected = select_range(generate_scale(MusicalKey.C, ScaleType.MAJOR))
    assert selected == NoteRange(36, 84)
    assert selected.key_count == 49
    assert str(selected.lowest_position) == "C2"
    assert str(selected.highest_position) == "C6"


def test_empty_sequence_uses_default_window():
    assert select_range([]) == NoteRange(36, 84)


def test_window_starts_on_c_and_covers_sequence():
    notes = [65, 69, 72, 77]
    selected = select_range(notes)
    assert selected.lowest_note % 12 == 0
    assert selected.key_count == 49
    assert selected.covers(notes)


def test_low_sequence_is_clamped_to_a0(caplog):
    with caplog.at_level(logging.WARNING, logger="range_selector"):
        selected = select_range([21, 24, 28])
    assert selected.lowest_note == 21
    assert selected.covers([21, 24, 28])
    assert "clamped" in caplog.text


def test_high_sequence_is_clamped_to_c8():
    selected = select_range([100, 104, 108])
    assert selected.highest_note == 108
    assert 108 in selected
    assert 109 not in selected


def test_wide_sequence_is_covered_at_the_top():
    selected = select_range([30, 90])
    assert selected.highest_note == 90
    assert selected.key_count == 49
    assert 30 not in selected


def test_range_for_progression():
    steps = chords_by_key(MusicalKey.C, ScaleType.MAJOR)
    selected = select_range_for_progression(steps)
    assert selected.key_count == 49
    assert selected.covers(n for step in steps for n in step.midi_notes())
