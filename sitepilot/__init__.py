"""SitePilot: AI-driven website edits staged on preview branches."""

__version__ = "0.1.0"
