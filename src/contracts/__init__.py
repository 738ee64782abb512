"""Contracts package.

This package defines *public* contracts shared by the publisher and the drain loop:
bus/source/detail-type names, the student record fields, and the delivered-event
shape read back from the queue. Both sides may only share types via `src.core`
and `src.contracts`.
"""
