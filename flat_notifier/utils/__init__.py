"""
Utility modules for the Flat Notifier system.
"""
