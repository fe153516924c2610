"""Window-manager enums used to build requests.

These only name values on the wire; the shapes of monitors, workspaces and
windows are passed through as decoded JSON.
"""

from __future__ import annotations

from enum import Enum


class WmEventType(str, Enum):
    """Event types the server can push to subscribers."""

    ALL = "all"
    APPLICATION_EXITING = "application_exiting"
    BINDING_MODES_CHANGED = "binding_modes_changed"
    FOCUS_CHANGED = "focus_changed"
    FOCUSED_CONTAINER_MOVED = "focused_container_moved"
    MONITOR_ADDED = "monitor_added"
    MONITOR_UPDATED = "monitor_updated"
    MONITOR_REMOVED = "monitor_removed"
    TILING_DIRECTION_CHANGED = "tiling_direction_changed"
    USER_CONFIG_CHANGED = "user_config_changed"
    WINDOW_MANAGED = "window_managed"
    WINDOW_UNMANAGED = "window_unmanaged"
    WORKSPACE_ACTIVATED = "workspace_activated"
    WORKSPACE_DEACTIVATED = "workspace_deactivated"
    WORKSPACE_UPDATED = "workspace_updated"


class QueryCommand(str, Enum):
    """Names accepted by `query <name>`."""

    MONITORS = "monitors"
    WORKSPACES = "workspaces"
    WINDOWS = "windows"
    FOCUSED = "focused"
    BINDING_MODES = "binding-modes"


class Direction(str, Enum):
    """Directions for focus/move commands."""

    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"
