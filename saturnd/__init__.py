"""A cron-like task scheduler daemon, its on-disk task store and its named-pipe client."""

__version__ = "0.1.0"