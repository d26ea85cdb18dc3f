"""
GEO Tracker
===========

Measures how visible Development Seed is in answers from AI assistants:
- Perplexity
- Gemini
- ChatGPT
- Claude

Each answer is scored for prominence, sent to Plausible Analytics as a
custom event, and appended to a CSV log.

Configuration is managed via environment variables or .env file.
"""

__version__ = "1.0.0"
