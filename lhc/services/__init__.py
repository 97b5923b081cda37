"""Service layer - data transfer and garbage collection."""
