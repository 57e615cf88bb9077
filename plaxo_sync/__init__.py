"""
plaxo_sync - Plaxo address-book synchronization

Downloads a user's contacts from the Plaxo REST API and merges them into
a local contact store.
"""

__version__ = "0.1.0"
