"""Tests - VM test suite."""
