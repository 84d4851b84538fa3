"""enrollq - Enrollment Job Queue

Background job processing for enrollment-capacity operations: a persisted
job queue, a polling processor with bounded concurrency and retry/backoff,
and the waitlist promotion workflow built on top of it.
"""

__version__ = "0.1.0"
