"""
Core modules for modguard.

This package contains the TTL cache, permission resolution, budget
aggregation and pricing.
"""
