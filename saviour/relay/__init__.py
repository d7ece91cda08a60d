"""Key-value relay holding the shared grid snapshot."""
