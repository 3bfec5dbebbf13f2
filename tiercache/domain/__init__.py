"""Domain Layer: contracts, value objects, errors and events.

Has no dependencies on the infrastructure or core layers.
"""
