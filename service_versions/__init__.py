"""
Versions service for the Billing Versions Gateway.
"""
