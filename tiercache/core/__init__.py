"""Core Application Layer: composes cache tiers into one logical cache.

Depends only on the domain interfaces; concrete tiers are injected.
"""
