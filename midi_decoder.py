"""
Decode raw MIDI packets into typed events.

Only channel voice messages are given meaning; timing clock (0xF8) and active
sensing (0xFE) are dropped before anything else looks at the packet. Decoding
never raises on byte input: anything that cannot be understood yields ``None``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

import mido

logger = logging.getLogger(__name__)

TIMING_CLOCK = 0xF8
ACTIVE_SENSING = 0xFE
FILTERED_STATUS = frozenset({TIMING_CLOCK, ACTIVE_SENSING})

NOTE_OFF = 0x80
NOTE_ON = 0x90
CONTROL_CHANGE = 0xB0
PROGRAM_CHANGE = 0xC0
PITCH_BEND = 0xE0

PITCH_BEND_MAX = 0x3FFF


class MidiEventKind(Enum):
    NOTE_ON = "note_on"
    NOTE_OFF = "note_off"
    CONTROL_CHANGE = "control_change"
    PROGRAM_CHANGE = "program_change"
    PITCH_BEND = "pitch_bend"
    OTHER = "other"


@dataclass(frozen=True)
class MidiEvent:
    kind: MidiEventKind
    channel: int  # 0..15, shown 1..16
    data1: int
    data2: int
    display_text: str
    status: int = 0
    raw: Tuple[int, ...] = ()

    @property
    def display_channel(self) -> int:
        return self.channel + 1

    @property
    def note(self) -> int:
        return self.data1

    @property
    def velocity(self) -> int:
        return self.data2

    @property
    def pitch_bend(self) -> Optional[float]:
        if self.kind is not MidiEventKind.PITCH_BEND:
            return None
        return pitch_bend_value(self.data1, self.data2)


def pitch_bend_value(lsb: int, msb: int) -> float:
    """Combine the 14-bit pitch bend and normalize it to [-1.0, 1.0]."""
    raw = lsb + (msb << 7)
    return (raw / PITCH_BEND_MAX) * 2.0 - 1.0


def _hex(value: int) -> str:
    return f"0x{value & 0xFF:02X}"


def _three_byte(data: Sequence[int]) -> MidiEvent:
    status, data1, data2 = data[0], data[1], data[2]
    kind_bits = status & 0xF0
    channel = status & 0x0F
    shown = channel + 1
    raw = tuple(data)

    if kind_bits == NOTE_ON and data2 > 0:
        return MidiEvent(MidiEventKind.NOTE_ON, channel, data1, data2,
                         f"Note ON: {data1} (Ch: {shown}, Vel: {data2})", status, raw)
    if kind_bits == NOTE_ON or kind_bits == NOTE_OFF:
        # velocity 0 note-on is a note-off under running status
        return MidiEvent(MidiEventKind.NOTE_OFF, channel, data1, data2,
                         f"Note OFF: {data1} (Ch: {shown})", status, raw)
    if kind_bits == CONTROL_CHANGE:
        return MidiEvent(MidiEventKind.CONTROL_CHANGE, channel, data1, data2,
                         f"CC: Controller {data1} = {data2} (Ch: {shown})", status, raw)
    if kind_bits == PROGRAM_CHANGE:
        return MidiEvent(MidiEventKind.PROGRAM_CHANGE, channel, data1, 0,
                         f"Program Change: {data1} (Ch: {shown})", status, raw)
    if kind_bits == PITCH_BEND:
        value = pitch_bend_value(data1, data2)
        return MidiEvent(MidiEventKind.PITCH_BEND, channel, data1, data2,
                         f"Pitch Bend: {value:.2f} (Ch: {shown})", status, raw)

    text = f"MIDI: Status {_hex(status)} Data: " + " ".join(_hex(b) for b in data)
    return MidiEvent(MidiEventKind.OTHER, channel, data1, data2, text, status, raw)


def decode(data: Sequence[int]) -> Optional[MidiEvent]:
    """Return the event carried by one packet, or None when there is none.

    Packets of three or more bytes are read as status + two data bytes. Two-byte
    packets are only understood as Program Change; every other short packet is
    ignored.
    """
    if not data:
        return None
    status = data[0]
    if status in FILTERED_STATUS:
        return None

    if len(data) >= 3:
        event = _three_byte(data)
    elif len(data) == 2 and status & 0xF0 == PROGRAM_CHANGE:
        channel = status & 0x0F
        event = MidiEvent(
            MidiEventKind.PROGRAM_CHANGE,
            channel,
            data[1],
            0,
            f"Program Change: {data[1]} (Ch: {channel + 1})",
            status,
            tuple(data),
        )
    else:
        return None

    logger.debug("decoded %s", event.display_text)
    return event


def decode_message(msg: mido.Message) -> Optional[MidiEvent]:
    """Decode a message read from a mido port or file."""
    if msg.is_meta:
        return None
    return decode(msg.bytes())
