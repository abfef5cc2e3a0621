"""Relay Singular attribution postbacks to Mixpanel profiles and events."""

__all__ = []
