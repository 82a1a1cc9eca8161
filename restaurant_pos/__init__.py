"""
                Restaurant POS

Point-of-sale backend for a restaurant: catalog and inventory, ordering
with atomic stock reservation, split billing and payment recording.
"""

__version__ = "1.0.0"
