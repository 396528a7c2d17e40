"""Core package: settings, logging, exceptions and datetime helpers."""
