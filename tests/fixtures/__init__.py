"""
Shared test fixtures for the sqliteorm library.

Usage:
    from tests.fixtures import Contact, ShoppingItem, Tag, make_item
"""

from tests.fixtures.records import Contact, ShoppingItem, Swatch, Tag, make_item

__all__ = [
    "ShoppingItem",
    "Tag",
    "Contact",
    "Swatch",
    "make_item",
]
