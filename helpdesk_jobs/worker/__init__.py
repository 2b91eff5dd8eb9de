"""
Worker module.
Contains the handler registry, the dispatch loop and its start guard.
"""
