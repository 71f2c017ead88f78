"""templatelab: model catalog sync and serving for the chat template playground."""

__version__ = "0.1.0"
