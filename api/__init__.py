"""api/ -- FastAPI application, HTTP contracts, and route modules."""
