"""
HTTP control surface for the probe harness.
"""

from .control_api import ControlApi, CredentialsUpdate

__all__ = ["ControlApi", "CredentialsUpdate"]
