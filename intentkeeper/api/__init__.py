"""HTTP / WebSocket surface."""
