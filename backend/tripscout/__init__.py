"""TripScout travel search aggregation engine."""
