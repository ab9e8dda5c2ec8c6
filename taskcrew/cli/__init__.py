"""Command-line interface for taskcrew."""
