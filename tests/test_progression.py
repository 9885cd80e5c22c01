import pytest

from progression import (
    PROGRESSION_LIBRARY,
    ProgressionDifficulty,
    chords_by_key,
    chords_by_type,
    generate_chord_progression,
    get_progression,
    progression_notes,
    progressions_for_difficulty,
    roman_numeral,
    voice_leading_distance,
)
from theory import ChordInfo, ChordQuality, MusicalKey, ScaleType


def test_voice_leading_distance():
    assert voice_leading_distance([60, 64, 67], [62, 65, 69]) == 5
    assert voice_leading_distance([60, 64, 67], [60, 64, 67]) == 0
    # the unpaired seventh is charged its distance to the nearest note
    assert voice_leading_distance([60, 64, 67], [60, 64, 67, 70]) == 3


def test_c_major_progression_is_voice_led():
    progression = generate_chord_progression(MusicalKey.C, ScaleType.MAJOR)
    assert len(progression) == 7
    assert progression[0].midi_notes() == [60, 64, 67]
    assert progression[1].midi_notes() == [62, 65, 69]
    assert progression[2].midi_notes() == [64, 67, 71]
    assert [step.numeral for step in progression] == ["I", "ii", "iii", "IV", "V", "vi", "vii°"]
    assert progression[0].name == "I: C"


def test_voice_leading_picks_inversion_and_octave():
    steps = get_progression("ii - V - I").generate(MusicalKey.C)
    assert steps[0].midi_notes() == [62, 65, 69]
    # G in second inversion a step below keeps the D as a common tone
    assert steps[1].midi_notes() == [62, 67, 71]
    assert steps[1].chord.inversion == 2
    assert steps[1].name == "V: G (2nd inv)"


def _every_voicing(chord):
    for inversion in range(len(chord.quality.intervals)):
        for octave in range(-1, 10):
            notes = ChordInfo(chord.root, chord.quality, inversion).midi_notes(octave)
            if all(21 <= n <= 108 for n in notes):
                yield notes


@pytest.mark.parametrize("sevenths", [False, True])
@pytest.mark.parametrize("scale_type", list(ScaleType))
def test_each_voicing_moves_least(scale_type, sevenths):
    for key in MusicalKey:
        progression = generate_chord_progression(key, scale_type, sevenths=sevenths)
        for previous, current in zip(progression, progression[1:]):
            chosen = voice_leading_distance(previous.midi_notes(), current.midi_notes())
            cheapest = min(
                voice_leading_distance(previous.midi_notes(), notes) for notes in _every_voicing(current.chord)
            )
            assert chosen == cheapest, (key, current.name)


def test_seventh_progression_resolves_by_step():
    progression = generate_chord_progression(MusicalKey.C, ScaleType.MAJOR, sevenths=True)
    assert [step.numeral for step in progression] == ["I", "ii", "iii", "IV", "V", "vi", "vii°"]
    assert progression[0].midi_notes() == [60, 64, 67, 71]
    # the seventh in the bass keeps the A of the Am7 as a common tone
    assert progression[-1].chord.name == "Bø7 (3rd inv)"
    assert voice_leading_distance(progression[-2].midi_notes(), progression[-1].midi_notes()) == 5


def test_progression_stays_on_the_keyboard():
    for key in MusicalKey:
        for step in generate_chord_progression(key, ScaleType.MAJOR):
            assert all(21 <= n <= 108 for n in step.midi_notes())


def test_chords_by_key():
    steps = chords_by_key(MusicalKey.C, ScaleType.MAJOR)
    assert len(steps) == 21
    assert [s.midi_notes() for s in steps[:3]] == [[60, 64, 67], [64, 67, 72], [67, 72, 76]]
    assert steps[3].numeral == "ii"
    assert steps[3].chord.quality is ChordQuality.MINOR


def test_chords_by_type():
    with_inversions = chords_by_type(ChordQuality.MAJOR)
    assert len(with_inversions) == 36
    root_only = chords_by_type(ChordQuality.MINOR7, include_inversions=False)
    assert len(root_only) == 12
    assert root_only[0].midi_notes() == [60, 63, 67, 70]
    assert root_only[-1].chord.root is MusicalKey.B


def test_progression_notes_are_sorted_and_unique():
    steps = chords_by_key(MusicalKey.C, ScaleType.MAJOR)[:2]
    assert progression_notes(steps) == [60, 64, 67, 72]


def test_named_progression_library():
    assert len(PROGRESSION_LIBRARY) == 8
    rock = get_progression("I - bVII - IV")
    assert [c.root for c in rock.chords(MusicalKey.C)] == [MusicalKey.C, MusicalKey.B_FLAT, MusicalKey.F]
    pop = get_progression("I - V - vi - IV")
    assert [c.name for c in pop.chords(MusicalKey.G)] == ["G", "D", "Em", "C"]
    assert len(progressions_for_difficulty(ProgressionDifficulty.BEGINNER)) == 3
    with pytest.raises(ValueError):
        get_progression("I - IV - V - I")


def test_roman_numeral_casing():
    assert roman_numeral(0, ChordQuality.MAJOR) == "I"
    assert roman_numeral(1, ChordQuality.MINOR7) == "ii"
    assert roman_numeral(6, ChordQuality.DIMINISHED) == "vii°"
    assert roman_numeral(2, ChordQuality.AUGMENTED) == "III+"
