# -*- coding: utf-8 -*-
########################
# channel_decoder.py
########################
# Purpose:
# - Turn one active "#mmmcc:data" line into timeline objects and tempo events.
# - Own the per-channel long-note toggle state and the #BPMxx / #STOPxx / #LNOBJ side tables.
#
# Design notes:
# - Cell i of l lands at position = measure + i / l. Cell "00" is empty.
# - Objects carry only a position here; time is stamped later by TimeResolver.
# - #BPMxx / #STOPxx references (channels 08, 09) are recorded and resolved in finish(), so the
#   side tables may be declared anywhere in the file.
# - The long-note toggle map is keyed by channel and set to False on first use of a channel.
# - Unknown channels are ignored. Channel 02 (measure length) is handled by bms_store.py.
#
########################
# Interfaces:
# Public classes:
# - class ChannelDecoder
#   - set_bpm(key: int, bpm: float) -> None
#   - set_stop(key: int, pulses: int) -> None
#   - add_long_note_end_key(key: int) -> None
#   - decode(measure: int, channel_text: str, data: str) -> int   # objects + events emitted
#   - finish() -> tuple[list[TimelineObject], list[TempoEvent]]
#
# Outputs:
# - Unordered, untimed TimelineObjects and TempoEvents in source encounter order.
#
########################

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Dict, List, Optional, Set, Tuple, Union

from bms_errors import MalformedNumericLiteralError
from bms_keys import MAX_KEY, KeyTable, format_base36, parse_base36, parse_hex
from bms_models import (
    LAYER_BASE,
    LAYER_OVERLAY,
    LAYER_POOR,
    BackgroundAudio,
    BackgroundImageLayer,
    DamageNote,
    InvisibleNote,
    PlayableNote,
    Stop,
    TempoChange,
    TempoEvent,
    TimelineObject,
)


logger = logging.getLogger(__name__)


# #STOPxx values are in 1/192 of a four-beat measure.
STOP_PULSES_PER_MEASURE = 192.0

MAX_DAMAGE = MAX_KEY

CHANNEL_BGM = parse_base36("01")
CHANNEL_MEASURE_LENGTH = parse_base36("02")
CHANNEL_TEMPO_HEX = parse_base36("03")
CHANNEL_BGA_BASE = parse_base36("04")
CHANNEL_BGA_POOR = parse_base36("06")
CHANNEL_BGA_LAYER = parse_base36("07")
CHANNEL_TEMPO_TABLE = parse_base36("08")
CHANNEL_STOP_TABLE = parse_base36("09")

_IMAGE_LAYERS = {
    CHANNEL_BGA_BASE: LAYER_BASE,
    CHANNEL_BGA_POOR: LAYER_POOR,
    CHANNEL_BGA_LAYER: LAYER_OVERLAY,
}

# Lane digits used by both player sides: 1-6 keys/scratch, 8-9 extra keys. 7 is the foot pedal.
_LANE_DIGITS = "12345689"


def _lane_channels(first_digits: str) -> Dict[int, int]:
    """Map channel id -> numeric value of its leading digit, for the given family digits."""
    channels: Dict[int, int] = {}
    for leading in first_digits:
        for lane_digit in _LANE_DIGITS:
            channels[parse_base36(leading + lane_digit)] = int(leading, 36)
    return channels


_PLAYABLE_CHANNELS = _lane_channels("12")
_INVISIBLE_CHANNELS = _lane_channels("34")
_LONG_NOTE_CHANNELS = _lane_channels("56")
_DAMAGE_CHANNELS = _lane_channels("DE")

# Leading digit of each family's player-1 channels; player = leading digit - offset.
_PLAYABLE_OFFSET = 0
_INVISIBLE_OFFSET = 2
_LONG_NOTE_OFFSET = 4
_DAMAGE_OFFSET = 12


@dataclass(frozen=True)
class _TableReference:
    position: float
    key: int
    is_stop: bool
    measure: int
    channel: str


class ChannelDecoder:
    def __init__(self) -> None:
        self._objects: List[TimelineObject] = []
        self._pending: List[Union[TempoEvent, _TableReference]] = []
        self._long_note_open: Dict[int, bool] = {}
        self._long_note_end_keys: Set[int] = set()
        self._bpm_table: KeyTable[float] = KeyTable("BPM")
        self._stop_table: KeyTable[float] = KeyTable("STOP")

    def set_bpm(self, key: int, bpm: float) -> None:
        self._bpm_table.set(key, float(bpm))

    def set_stop(self, key: int, pulses: int) -> None:
        if int(pulses) < 0:
            raise MalformedNumericLiteralError(f"#STOP{format_base36(key)} must not be negative, got {pulses}")
        self._stop_table.set(key, float(pulses) / STOP_PULSES_PER_MEASURE)

    def add_long_note_end_key(self, key: int) -> None:
        self._long_note_end_keys.add(int(key))

    def _toggle_long_note(self, channel: int) -> bool:
        if channel not in self._long_note_open:
            self._long_note_open[channel] = False
        was_open = self._long_note_open[channel]
        self._long_note_open[channel] = not was_open
        return was_open

    def decode(self, measure: int, channel_text: str, data: str) -> int:
        channel = parse_base36(channel_text)
        cells_text = "".join(str(data).split())
        if len(cells_text) % 2 != 0:
            raise MalformedNumericLiteralError(
                f"Channel data for #{int(measure):03d}{channel_text} has odd length {len(cells_text)}"
            )

        cells = [cells_text[index:index + 2] for index in range(0, len(cells_text), 2)]
        # Parse every cell first; a bad cell must not leave partial output.
        keys = [parse_base36(cell) for cell in cells]
        if channel == CHANNEL_TEMPO_HEX:
            hex_values = [parse_hex(cell) if key else 0 for cell, key in zip(cells, keys)]
        else:
            hex_values = []

        emitted = 0
        cell_count = len(cells)
        for index, key in enumerate(keys):
            if not key:
                continue
            position = int(measure) + float(index) / float(cell_count)
            if channel == CHANNEL_TEMPO_HEX:
                emitted += self._emit_event(TempoChange(position=position, bpm=float(hex_values[index])))
            else:
                emitted += self._decode_cell(channel, channel_text, int(measure), position, key)
        return emitted

    def _emit(self, obj: TimelineObject) -> int:
        self._objects.append(obj)
        return 1

    def _emit_event(self, event: TempoEvent) -> int:
        self._pending.append(event)
        return 1

    def _decode_cell(self, channel: int, channel_text: str, measure: int, position: float, key: int) -> int:
        if channel == CHANNEL_BGM:
            return self._emit(BackgroundAudio(position=position, key=key))

        if channel in _IMAGE_LAYERS:
            return self._emit(BackgroundImageLayer(position=position, key=key, layer=_IMAGE_LAYERS[channel]))

        if channel == CHANNEL_TEMPO_TABLE or channel == CHANNEL_STOP_TABLE:
            reference = _TableReference(
                position=position,
                key=key,
                is_stop=channel == CHANNEL_STOP_TABLE,
                measure=measure,
                channel=channel_text,
            )
            self._pending.append(reference)
            return 1

        if channel in _PLAYABLE_CHANNELS:
            player = _PLAYABLE_CHANNELS[channel] - _PLAYABLE_OFFSET
            line = channel % 36
            if key in self._long_note_end_keys:
                emitted = self._emit(PlayableNote(position=position, key=key, player=player, line=line, long_note_end=True))
                return emitted + self._emit(BackgroundAudio(position=position, key=key))
            return self._emit(PlayableNote(position=position, key=key, player=player, line=line, long_note_end=False))

        if channel in _LONG_NOTE_CHANNELS:
            player = _LONG_NOTE_CHANNELS[channel] - _LONG_NOTE_OFFSET
            was_open = self._toggle_long_note(channel)
            return self._emit(
                PlayableNote(position=position, key=key, player=player, line=channel % 36, long_note_end=was_open)
            )

        if channel in _INVISIBLE_CHANNELS:
            player = _INVISIBLE_CHANNELS[channel] - _INVISIBLE_OFFSET
            return self._emit(InvisibleNote(position=position, key=key, player=player, line=channel % 36))

        if channel in _DAMAGE_CHANNELS:
            player = _DAMAGE_CHANNELS[channel] - _DAMAGE_OFFSET
            return self._emit(
                DamageNote(position=position, damage=min(key, MAX_DAMAGE), player=player, line=channel % 36)
            )

        if channel != CHANNEL_MEASURE_LENGTH:
            logger.debug("Ignoring unknown channel %s in measure %03d", channel_text, measure)
        return 0

    def open_long_note_channels(self) -> List[int]:
        return sorted(channel for channel, is_open in self._long_note_open.items() if is_open)

    def finish(self) -> Tuple[List[TimelineObject], List[TempoEvent]]:
        """Resolve table references and return (objects, tempo events) in encounter order."""
        tempo_events: List[TempoEvent] = []
        for item in self._pending:
            if isinstance(item, (TempoChange, Stop)):
                tempo_events.append(item)
            elif isinstance(item, _TableReference):
                event = self._resolve_reference(item)
                if event is not None:
                    tempo_events.append(event)

        for channel in self.open_long_note_channels():
            logger.warning("Long note left open on channel %s", format_base36(channel))

        return list(self._objects), list(tempo_events)

    def _resolve_reference(self, reference: _TableReference) -> Optional[TempoEvent]:
        key_text = format_base36(reference.key)
        if reference.is_stop:
            beats = self._stop_table.get(reference.key)
            if beats is None:
                logger.warning("Undefined #STOP%s referenced in measure %03d", key_text, reference.measure)
                return None
            return Stop(position=reference.position, beats=beats)

        bpm = self._bpm_table.get(reference.key)
        if bpm is None:
            logger.warning("Undefined #BPM%s referenced in measure %03d", key_text, reference.measure)
            return None
        return TempoChange(position=reference.position, bpm=bpm)
