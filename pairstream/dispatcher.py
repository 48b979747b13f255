"""Routes reader notifications to block state mutations."""
import logging
import math
import re
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, Mapping, Optional

from pairstream.block import BlockState, truncate_text
from pairstream.config import ProfileConfig
from pairstream.series import Number

logger = logging.getLogger(__name__)

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_NONZERO_MANTISSA = re.compile(r"[+-]?[0-9]*\.?[0-9]*[1-9]")


class EventKind(Enum):
    """Kinds of notification delivered by the tokenizer."""
    ENTER = "enter"
    TEXT = "text"
    EXIT = "exit"


@dataclass
class ReaderEvent:
    """One tokenizer notification, in document order."""
    kind: EventKind
    name: str
    attributes: Mapping[str, str] = field(default_factory=dict)
    text: Optional[str] = None

    def get_attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name)


def parse_int(text: str) -> Optional[int]:
    """Parse a signed decimal integer that fits in 64 bits, else None."""
    stripped = text.strip()
    if not _INT_PATTERN.fullmatch(stripped):
        return None
    value = int(stripped)
    if value < INT64_MIN or value > INT64_MAX:
        return None
    return value


def parse_float(text: str) -> Optional[float]:
    """Parse a floating-point numeral, rejecting overflow and underflow."""
    stripped = text.strip()
    if not stripped or "_" in stripped or not stripped.isascii():
        return None
    try:
        value = float(stripped)
    except ValueError:
        return None
    if math.isinf(value) and "inf" not in stripped.lower():
        return None
    if value == 0.0 and _NONZERO_MANTISSA.match(stripped):
        return None
    if 0.0 < abs(value) < sys.float_info.min:
        return None
    return value


NUMERAL_PARSERS: Dict[str, Callable[[str], Optional[Number]]] = {
    "float": parse_float,
    "int": parse_int,
}

Handler = Callable[[ReaderEvent], None]


class EventDispatcher:
    """
    Name-to-handler routing for one profile.

    Each notification performs at most one block mutation (or one
    passthrough write). Names not in the tables are ignored, which is the
    common case for markup that carries no measurements.
    """

    def __init__(
        self,
        profile: ProfileConfig,
        block: BlockState,
        passthrough: Callable[[str], None],
        max_text: int = 511,
        metrics=None
    ):
        self.profile = profile
        self.block = block
        self.passthrough = passthrough
        self.max_text = max_text
        self.metrics = metrics

        self.malformed: Dict[str, int] = {
            profile.first_element: 0,
            profile.second_element: 0,
        }
        self.passthrough_count = 0

        first_parser = NUMERAL_PARSERS[profile.first_kind]
        second_parser = NUMERAL_PARSERS[profile.second_kind]

        enter: Dict[str, Handler] = {
            profile.block_element: self._on_block_start,
            profile.label_element: self._on_label,
        }
        text: Dict[str, Handler] = {
            profile.first_element: lambda event: self._on_value(
                event, first_parser, block.push_first),
            profile.second_element: lambda event: self._on_value(
                event, second_parser, block.push_second),
        }
        if profile.qualifier_element:
            text[profile.qualifier_element] = self._on_qualifier
        for name in profile.passthrough_elements:
            text[name] = self._on_passthrough
        exit_: Dict[str, Handler] = {
            profile.block_element: self._on_block_end,
        }

        self._tables: Dict[EventKind, Dict[str, Handler]] = {
            EventKind.ENTER: enter,
            EventKind.TEXT: text,
            EventKind.EXIT: exit_,
        }

    @property
    def text_elements(self) -> FrozenSet[str]:
        """Element names whose text the reader has to collect."""
        return frozenset(self._tables[EventKind.TEXT])

    def dispatch(self, event: ReaderEvent) -> bool:
        """Route one notification. Returns False when the name is not handled."""
        handler = self._tables[event.kind].get(event.name)
        if handler is None:
            return False
        handler(event)
        return True

    def _on_block_start(self, event: ReaderEvent):
        self.block.start_block()

    def _on_block_end(self, event: ReaderEvent):
        self.block.end_block()

    def _on_label(self, event: ReaderEvent):
        value = event.get_attribute(self.profile.label_attribute)
        if value is None:
            logger.debug(
                f"<{event.name}> has no '{self.profile.label_attribute}' attribute, "
                f"label reset"
            )
        self.block.set_label(value)

    def _on_qualifier(self, event: ReaderEvent):
        self.block.set_qualifier(event.text)

    def _on_value(self, event: ReaderEvent, parse, push):
        value = parse(event.text) if event.text is not None else None
        if value is None:
            logger.debug(f"Ignoring malformed <{event.name}> value: {event.text!r}")
            self.malformed[event.name] += 1
            if self.metrics:
                self.metrics.record_dropped(event.name, "malformed")
            return
        push(value)

    def _on_passthrough(self, event: ReaderEvent):
        if event.text is None:
            return
        self.passthrough(truncate_text(event.text, self.max_text))
        self.passthrough_count += 1
        if self.metrics:
            self.metrics.record_passthrough()
