"""Boundaries to the outside world: transports and device context."""
