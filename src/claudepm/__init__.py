"""claude-pm - manage locally cached Claude project session logs."""

__version__ = "0.1.0"
