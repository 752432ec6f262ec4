"""intonate: intonation trainer and sheet-music follower for practising musicians."""

__version__ = "0.1.0"
