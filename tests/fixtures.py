"""Shared constants for pricing tests."""

from datetime import datetime, timezone

# Fixed evaluation instant so promo windows are deterministic.
NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)
