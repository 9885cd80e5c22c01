import json

import pytest

from session import HandSelection, PracticeMode, PracticeSession
from settings import PracticeSettings, load_settings, settings_from_dict
from theory import ChordQuality, MusicalKey


def test_load_yaml_settings(tmp_path):
    path = tmp_path / "practice.yaml"
    path.write_text(
        "mode: arpeggios\n"
        "root_note: Eb\n"
        "arpeggio_quality: minor7\n"
        "arpeggio_octaves: 2\n"
        "hand: both\n",
        encoding="utf-8",
    )
    settings = load_settings(str(path))
    assert settings.source == str(path)
    assert settings.values["mode"] is PracticeMode.ARPEGGIOS
    assert settings.values["root_note"] is MusicalKey.E_FLAT
    assert settings.values["arpeggio_quality"] is ChordQuality.MINOR7
    assert settings.values["hand"] is HandSelection.BOTH


def test_load_json_settings(tmp_path):
    path = tmp_path / "practice.json"
    path.write_text(json.dumps({"mode": "chords_progression", "progression": "ii - V - I"}), encoding="utf-8")
    settings = load_settings(str(path))
    assert settings.values == {"mode": PracticeMode.CHORDS_PROGRESSION, "progression": "ii - V - I"}


def test_empty_yaml_file_keeps_defaults(tmp_path):
    path = tmp_path / "empty.yml"
    path.write_text("", encoding="utf-8")
    assert load_settings(str(path)).values == {}


@pytest.mark.parametrize(
    "data",
    [
        {"tempo": 90},
        {"scale_octaves": 5},
        {"hand": "middle"},
        {"include_inversions": "yes"},
        ["scales"],
    ],
)
def test_invalid_settings_raise(data):
    with pytest.raises(ValueError):
        settings_from_dict(data)


def test_merged_overrides_and_apply():
    settings = settings_from_dict({"mode": "scales", "key": "G"})
    merged = settings.merged({"key": "A", "scale_type": "minor"})
    assert settings.values["key"] is MusicalKey.G
    assert merged.values["key"] is MusicalKey.A

    session = PracticeSession()
    merged.apply(session)
    assert session.current_sequence == (69, 71, 72, 74, 76, 77, 79, 81)


def test_apply_empty_settings_is_noop():
    session = PracticeSession()
    PracticeSettings().apply(session)
    assert session.mode is PracticeMode.SCALES
