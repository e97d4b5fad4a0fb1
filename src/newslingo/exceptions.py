"""Exceptions raised by newslingo."""


class NewsLingoError(Exception):
    """Base class for newslingo errors."""


class ConfigError(NewsLingoError):
    """Invalid or missing configuration."""


class SubtitleFileError(NewsLingoError):
    """A subtitle file could not be read."""


class NoSubtitlesError(NewsLingoError):
    """A subtitle file parsed to zero segments."""


class TranslationError(NewsLingoError):
    """A translation batch failed or returned unusable output."""


class StorageError(NewsLingoError):
    """Upload, insert, update or delete against the backend failed."""
