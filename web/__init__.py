"""
Tipline web interface.
"""
