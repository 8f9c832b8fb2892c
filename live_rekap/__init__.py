"""
live_rekap
~~~~~~~~~~

Live broadcast recap service: one monitored session per schedule id,
real-time broadcast of room telemetry, periodic recap persistence.
"""
__version__ = "0.1.0"
