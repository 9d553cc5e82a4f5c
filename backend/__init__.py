"""hierviz HTTP and WebSocket backend."""
