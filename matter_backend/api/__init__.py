"""HTTP layer: FastAPI application and response mapping."""
