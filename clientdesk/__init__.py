"""
clientdesk - client and project records for a small outsourcing business.

Record stores with validation, persistence and change notification, a
store registry, and client/project services on top.
"""

__version__ = "0.1.0"
