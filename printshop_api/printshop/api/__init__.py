"""FastAPI application for the print shop order engine."""
