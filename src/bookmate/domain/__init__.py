"""Domain layer for Bookmate.

Contains the relationship event contracts returned by the engine.
This layer has no dependencies on infrastructure concerns.
"""
