"""
Integration tests for the rendering engine monitor.

These tests run the real scheduler, service and dashboard together against
an in-memory engine manager.

Run with:
    pytest tests/integration/ -v
"""
