"""Naive UTC timestamps, matching how the database stores them."""
from datetime import datetime, timezone


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)
