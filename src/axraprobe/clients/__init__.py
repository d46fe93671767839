"""
Payment client implementations usable behind the harness.
"""

from .simulated import SimulatedClientError, SimulatedClientFactory, SimulatedPaymentClient

__all__ = ["SimulatedClientError", "SimulatedClientFactory", "SimulatedPaymentClient"]
