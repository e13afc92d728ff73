"""
TwiddlePID - Cross-Track Error Steering PID with Online Twiddle Tuning

A steering PID controller for a simulated vehicle together with a streaming
twiddle (coordinate descent) tuner that adapts the gains across repeated
simulator cycles.

Copyright (c) 2024 TwiddlePID Contributors
Licensed under the MIT License.
"""

from .auto_steering import AutoSteeringPID, AutoSteeringPIDError
from .exceptions import ConfigurationError, TelemetryError, TwiddlePIDError
from .log_observer import LogMode, LogObserver
from .observer_base import TuningObserver
from .probe import CycleReport, ParamDelta, ProbePhase
from .recording_observer import RecordingObserver
from .steering_pid import SteeringPID
from .telemetry import (
    Frame,
    FrameKind,
    Telemetry,
    clamp_steering,
    encode_manual,
    encode_reset,
    encode_steer,
    parse_frame,
)
from .twiddle import Twiddle

__version__ = "1.0.0"
__author__ = "TwiddlePID Contributors"
__license__ = "MIT"

__all__ = [
    "SteeringPID",
    "Twiddle",
    "AutoSteeringPID",
    "ProbePhase",
    "ParamDelta",
    "CycleReport",
    "LogMode",
    "TuningObserver",
    "LogObserver",
    "RecordingObserver",
    "Telemetry",
    "Frame",
    "FrameKind",
    "parse_frame",
    "encode_steer",
    "encode_reset",
    "encode_manual",
    "clamp_steering",
    "TwiddlePIDError",
    "AutoSteeringPIDError",
    "ConfigurationError",
    "TelemetryError",
]
