"""Spacewalk redeem coordinator and Stellar offramp runner."""

__version__ = "0.2.0"
