"""Tests for relaygraph."""
