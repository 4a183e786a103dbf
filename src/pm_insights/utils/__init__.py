"""Date, numeric and logging helpers."""
