"""Task board and time tracking core for a team/project-management app."""

__version__ = "0.1.0"
