"""School election service: registration, nominations, ballots and results."""

__version__ = '1.0.0'
