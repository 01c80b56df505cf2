"""Orchestration over result archives: persisting runs and loading reports."""
