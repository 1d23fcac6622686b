"""
Kolla film room API.
"""

__version__ = "1.0.0"
