"""JobTrack: classify mailbox messages into job-application records."""

__version__ = "0.1.0"
