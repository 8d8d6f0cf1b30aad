"""shelfpad — project-scoped package installer and environment isolation."""

__version__ = "0.1.0"
