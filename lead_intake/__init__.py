"""
Lead intake service: validates website lead submissions, stores them, and
forwards them to an automation webhook and the GoHighLevel CRM.
"""

__version__ = "1.0.0"
