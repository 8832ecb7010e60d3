"""Per-client request admission.

``AbstractRateLimiter`` is what the HTTP middleware calls; the in-memory
fixed-window limiter is the only backend today.
"""
