# lead_intake/services/__init__.py
"""
Business logic services: validation, attribution, storage, and the
webhook and CRM integrations that run after a lead is stored.
"""
