"""
SharpLog — conversational work logging.

A short guided conversation is turned into a redacted, structured work
entry, optionally linked to the user's targets.
"""

__version__ = "0.1.0"
