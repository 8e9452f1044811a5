"""HealthSpot provider search API."""
