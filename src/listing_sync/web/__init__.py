"""HTTP API for the admin display layer."""
