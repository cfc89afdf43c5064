"""Adapter over ``fitparse`` producing the ordered message list the mapper reads.

FIT activity files write a session's summary message *after* the laps and
records it covers. ``decode`` hoists every session message ahead of that
block so a session always opens the group its laps and records belong to.
"""
import io
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from fitparse import FitFile
from fitparse.utils import FitParseError

from run_tracker.core.errors import DecodeError

logger = logging.getLogger(__name__)

SESSION_KIND = "session"
# Messages summarized by the session that follows them in a FIT file
GROUPED_KINDS = ("lap", "record")


@dataclass
class DecodedMessage:
    kind: str
    fields: dict[str, Any]
    units: dict[str, str] = field(default_factory=dict)


def decode(data: bytes) -> list[DecodedMessage]:
    """Decode FIT bytes; raise DecodeError on malformed or truncated content."""
    try:
        fit = FitFile(io.BytesIO(data))
        messages = [_to_message(mesg) for mesg in fit.get_messages()]
    except FitParseError as exc:
        raise DecodeError(f"Could not parse FIT data: {exc}") from exc
    logger.debug("Parsed FIT file and found %d messages", len(messages))
    return hoist_sessions(messages)


def _to_message(mesg) -> DecodedMessage:
    fields = {}
    units = {}
    for f in mesg.fields:
        fields[f.name] = f.value
        if f.units:
            units[f.name] = f.units
    return DecodedMessage(kind=mesg.name, fields=fields, units=units)


def hoist_sessions(messages: Iterable[DecodedMessage]) -> list[DecodedMessage]:
    ordered: list[DecodedMessage] = []
    pending: list[DecodedMessage] = []
    for message in messages:
        if message.kind in GROUPED_KINDS:
            pending.append(message)
        elif message.kind == SESSION_KIND:
            ordered.append(message)
            ordered.extend(pending)
            pending = []
        else:
            ordered.append(message)
    # trailing laps/records without a summary keep their place at the end
    ordered.extend(pending)
    return ordered
