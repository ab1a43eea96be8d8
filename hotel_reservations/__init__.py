"""Hotel room reservation core: availability, conflict-free booking and order workflows."""

__version__ = "1.0.0"
