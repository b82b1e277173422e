"""Business logic services: promotions, users and search."""
