"""
Castaway - party-style island survival game server
"""

__version__ = "0.1.0"
