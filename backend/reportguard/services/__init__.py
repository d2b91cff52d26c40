"""Report domain services: intake, status, roster and rate limits.

HTTP routes and socket handlers both call into this package so that the
reporting rules live in one place, away from transport concerns.
"""
