from .feed import EntryRecord, FeedRecord  # noqa: F401
