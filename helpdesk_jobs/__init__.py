"""
Helpdesk Background Job Queue

Durable, polling work dispatch for the slow AI-backed ticket operations
(ticket validation and code-location analysis) of the helpdesk.
"""

__version__ = "1.0.0"
