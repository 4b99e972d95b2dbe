"""HIDLink command-line application."""
