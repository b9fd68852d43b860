"""Dependency graph over DPs: construction, cycle detection and leveling.

Levels are a scheduling recommendation only. Nothing here runs task work;
DPs sharing a level simply have no dependency on one another.
"""
