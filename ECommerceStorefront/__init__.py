"""Storefront core: product catalog cache, cart ledger, discounts and checkout."""
