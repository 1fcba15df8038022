"""Releaseforge terminal output.

Modules
-------
renderer
    ``ReleaseRenderer`` turns run results, publish receipts and ledger
    entries into Rich renderables.
"""
