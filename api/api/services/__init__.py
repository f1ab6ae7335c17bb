"""Service layer for the alertwatch API."""
