"""Tests for shared Get Plump service utilities."""
