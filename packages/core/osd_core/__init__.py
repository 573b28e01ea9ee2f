"""Core presenter services: settings, logging, display state, channel reading, diagnostics."""

from .channel_reader import ChannelReader, ChannelStatus
from .config import OsdConfig, load_config, save_config
from .diagnostics import DiagnosticsExporter, build_doctor_payload
from .display_state import HIDE_AFTER_MS, DisplayStateMachine, DisplayStats, Idle, Visible
from .scheduling import Scheduler, VirtualScheduler

__all__ = [
    "ChannelReader",
    "ChannelStatus",
    "DiagnosticsExporter",
    "DisplayStateMachine",
    "DisplayStats",
    "HIDE_AFTER_MS",
    "Idle",
    "OsdConfig",
    "Scheduler",
    "VirtualScheduler",
    "Visible",
    "build_doctor_payload",
    "load_config",
    "save_config",
]
