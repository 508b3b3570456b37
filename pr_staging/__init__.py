"""Ephemeral Heroku staging apps for Bitbucket pull requests."""

__version__ = "0.1.0"
