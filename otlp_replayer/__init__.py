"""
OTLP Replayer - Replay OTLP JSON trace exports into Honeycomb

This package reads a file of concatenated OTLP JSON export documents,
translates them into Honeycomb events and sends them at a controlled
rate, optionally shifting timestamps so replayed traces look recent.
"""

__version__ = "1.0.0"
