"""
Trading dashboard job orchestration.

Submits stock analysis jobs to the analysis server, follows them to
completion, and keeps the stock lists they change cached on the client.
"""

__version__ = "0.1.0"
