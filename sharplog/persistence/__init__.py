"""
SharpLog Persistence.

Modules:
    - encryption:   AES-GCM encryption of the raw conversation
    - store:        SQLite tables for targets, work entries and links
    - transaction:  ordered save of an accepted summary
"""
