"""Routing of flushed payloads to destinations.

``DestinationRouter`` offers each payload to every registered destination
through that destination's own middleware chain.  ``plan.skip_reason``
applies per-call integration flags and the tracking plan first.
"""
