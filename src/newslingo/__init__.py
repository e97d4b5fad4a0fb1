"""newslingo - learn English from news broadcasts with bilingual subtitles."""

__version__ = "0.1.0"
