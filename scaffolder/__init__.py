"""Project scaffolding: templates in, work items, environments and app registrations out."""

__version__ = "0.1.0"
