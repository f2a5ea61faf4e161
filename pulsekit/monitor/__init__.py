"""Terminal rendering of pipeline statistics.

Modules
-------
renderer
    ``StatsRenderer`` turns ``StatsSnapshot`` into Rich renderables.
"""
