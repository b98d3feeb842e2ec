"""EVE: a keyword-reply bot for Mattermost."""

__version__ = "0.1.0"
