"""stepwork_server: FastAPI HTTP layer for guided step-work walks."""
