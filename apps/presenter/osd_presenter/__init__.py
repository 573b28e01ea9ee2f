"""Wayland OSD presenter application package."""
