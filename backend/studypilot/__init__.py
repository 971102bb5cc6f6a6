"""StudyPilot backend: offline content sync and study material processing."""

__version__ = "0.1.0"
