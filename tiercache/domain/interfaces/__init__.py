"""Domain Interfaces (Ports):

Defines the contracts (Abstract Base Classes) that cache tiers must
implement. The orchestration layer depends on these interfaces, not on
concrete stores.
"""
