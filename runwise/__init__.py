"""
Runwise - a development supervisor that explains crashes.

Runs a script as a child process, restarts it when source files change,
watches its output for errors, and explains them with either an offline
pattern matcher or Google Gemini.
"""

__version__ = "0.1.0"
