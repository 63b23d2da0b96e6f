"""Browser and API test automation for the salon-at-home storefront."""

__version__ = "1.0.0"
