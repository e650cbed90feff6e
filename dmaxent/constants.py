"""Numeric constants shared across the package."""

# Minimum difference between two doubles treated as distinct. Every
# "strictly better gradient" comparison is gated by it so that fits do not
# cycle on floating point noise.
TOLERANCE = 1e-7
