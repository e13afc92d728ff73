"""
Telemetry frame codec.

The simulator talks socket.io over a websocket. Event messages start with
"42" (4 = message, 2 = event) followed by a JSON array of event name and
data object, e.g. 42["telemetry",{"cte":"0.76","speed":"12.3",...}].
A payload containing null means the simulator is in manual driving mode.
"""

import json
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Mapping, Optional

from .exceptions import TelemetryError

EVENT_PREFIX = "42"


class FrameKind(IntEnum):
    """Classification of an incoming frame."""

    IGNORED = 0  # Not a socket.io event message
    MANUAL = 1  # Event without data, simulator is driven by hand
    EVENT = 2  # Event with a JSON data object


@dataclass
class Frame:
    """Decoded socket.io frame."""

    kind: FrameKind
    event: str = ""
    data: Optional[Dict[str, Any]] = None


@dataclass
class Telemetry:
    """One telemetry sample from the simulator."""

    cte: float
    speed: float
    steering_angle: float

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Telemetry":
        """
        Build a sample from a telemetry data object.

        The simulator sends numbers as strings; both forms are accepted.

        Args:
            data: Data object of a "telemetry" event

        Returns:
            Parsed telemetry sample

        Raises:
            TelemetryError: If a field is missing or not a number
        """
        return cls(
            cte=_read_number(data, "cte"),
            speed=_read_number(data, "speed"),
            steering_angle=_read_number(data, "steering_angle"),
        )


def _read_number(data: Mapping[str, Any], key: str) -> float:
    if key not in data:
        raise TelemetryError(f"Telemetry field missing: {key}")
    try:
        return float(data[key])
    except (TypeError, ValueError):
        raise TelemetryError(f"Telemetry field {key} is not a number: {data[key]!r}")


def extract_payload(message: str) -> Optional[str]:
    """
    Return the JSON array embedded in a socket.io event message.

    Args:
        message: Raw message text

    Returns:
        The text between the first "[" and the last "]", or None when the
        message carries null or no array at all
    """
    if "null" in message:
        return None
    start = message.find("[")
    end = message.rfind("]")
    if start != -1 and end != -1:
        return message[start : end + 1]
    return None


def parse_frame(frame: str) -> Frame:
    """
    Decode an incoming frame.

    Args:
        frame: Raw text frame from the simulator

    Returns:
        Frame with its kind, event name and data object

    Raises:
        TelemetryError: If the payload is not a JSON [event, data] array
    """
    if len(frame) <= 2 or not frame.startswith(EVENT_PREFIX):
        return Frame(FrameKind.IGNORED)

    payload = extract_payload(frame)
    if payload is None:
        return Frame(FrameKind.MANUAL)

    try:
        decoded = json.loads(payload)
    except json.JSONDecodeError as e:
        raise TelemetryError(f"Malformed event payload: {e}")

    if not isinstance(decoded, list) or not decoded or not isinstance(decoded[0], str):
        raise TelemetryError(f"Event payload is not an [event, data] array: {payload}")

    data = decoded[1] if len(decoded) > 1 else {}
    if not isinstance(data, dict):
        raise TelemetryError(f"Event data is not an object: {data!r}")

    return Frame(FrameKind.EVENT, decoded[0], data)


def encode_event(event: str, data: Optional[Dict[str, Any]] = None) -> str:
    """Encode an outgoing socket.io event message."""
    return EVENT_PREFIX + json.dumps([event, data or {}], separators=(",", ":"))


def encode_steer(steering_angle: float, throttle: float) -> str:
    """Encode a steering command."""
    return encode_event(
        "steer", {"steering_angle": steering_angle, "throttle": throttle}
    )


def encode_reset() -> str:
    """Encode the simulator reset command."""
    return encode_event("reset")


def encode_manual() -> str:
    """Encode the manual driving acknowledgement."""
    return encode_event("manual")


def clamp_steering(value: float, limit: float = 1.0) -> float:
    """Clamp a steering value to [-limit, limit]."""
    return max(-limit, min(limit, value))
