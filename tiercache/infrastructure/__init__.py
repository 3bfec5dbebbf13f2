"""Infrastructure Layer: Contains concrete implementations and adapters.

Provides the in-memory and disk-backed tiers that implement the domain
store contract, plus configuration, logging and console output.
"""
