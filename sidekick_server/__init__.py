"""Sidekick server: Firefly image generation and Google Docs/Sheets image replacement."""

__version__ = "0.1.0"
