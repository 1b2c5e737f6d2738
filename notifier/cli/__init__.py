"""
Bible Daily notifier CLI package.

Command-line interface for running the foreground timer and background
worker, and for managing notification settings and scheduled entries.
"""
