"""Two-service demo: service A (users) calls service B (info) under one trace."""
