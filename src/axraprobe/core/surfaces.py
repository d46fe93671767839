"""
Headless stand-ins for the containers widgets are mounted into.

A surface only tracks what an integrator would see: a loading placeholder,
a failure notice, or a result panel. Rendering is left to whatever presents
the harness (CLI, control API).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .contracts import LogSeverity

logger = logging.getLogger(__name__)


@dataclass
class ResultPanel:
    message: str
    severity: LogSeverity
    details: Any = None


@dataclass
class Surface:
    """Mutable view state of one mount container."""

    surface_id: str
    placeholder: str = ""
    mount_point: str | None = None
    notice: str | None = None
    panel: ResultPanel | None = None
    mounts: int = field(default=0, repr=False)

    @property
    def is_empty(self) -> bool:
        return not (self.placeholder or self.mount_point or self.notice or self.panel)

    def prepare(self, mount_point: str, placeholder: str) -> None:
        self.mount_point = mount_point
        self.placeholder = placeholder
        self.notice = None
        self.panel = None
        self.mounts += 1

    def show_notice(self, notice: str) -> None:
        self.placeholder = ""
        self.notice = notice

    def show_panel(self, message: str, severity: LogSeverity, details: Any = None) -> None:
        self.placeholder = ""
        self.panel = ResultPanel(message=message, severity=severity, details=details)

    def wipe(self) -> None:
        self.placeholder = ""
        self.mount_point = None
        self.notice = None
        self.panel = None

    def as_dict(self) -> dict[str, Any]:
        panel = None
        if self.panel is not None:
            panel = {
                "message": self.panel.message,
                "severity": self.panel.severity,
                "details": self.panel.details,
            }
        return {
            "surface_id": self.surface_id,
            "placeholder": self.placeholder,
            "mount_point": self.mount_point,
            "notice": self.notice,
            "panel": panel,
        }


class SurfaceRegistry:
    """Known mount targets, addressable by id."""

    def __init__(self, surface_ids: list[str] | tuple[str, ...] = ()) -> None:
        self._surfaces: dict[str, Surface] = {}
        for surface_id in surface_ids:
            self.register(surface_id)

    def __contains__(self, surface_id: object) -> bool:
        return surface_id in self._surfaces

    def register(self, surface_id: str) -> Surface:
        if not surface_id:
            raise ValueError("surface_id must be a non-empty string")
        surface = self._surfaces.get(surface_id)
        if surface is None:
            surface = Surface(surface_id=surface_id)
            self._surfaces[surface_id] = surface
            logger.debug("Registered surface %s", surface_id)
        return surface

    def get(self, surface_id: str) -> Surface | None:
        return self._surfaces.get(surface_id)

    def ids(self) -> list[str]:
        return list(self._surfaces)


__all__ = ["ResultPanel", "Surface", "SurfaceRegistry"]
