"""
Shared utilities: structured logging and timers.
"""
