"""API routers for the installation backend."""
