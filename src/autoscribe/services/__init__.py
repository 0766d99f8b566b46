"""Settings persistence and telemetry services."""
