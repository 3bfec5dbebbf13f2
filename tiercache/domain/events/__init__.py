"""Domain Events emitted by the cache tiers and the tiered orchestrator."""
