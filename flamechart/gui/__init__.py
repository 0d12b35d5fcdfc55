"""PySide6 host for the flame chart."""
