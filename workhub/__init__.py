"""Workhub: multi-tenant workspaces, teams, projects and issues."""

__version__ = "0.1.0"
