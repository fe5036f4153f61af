"""Tests for the Presence Pre-heat integration."""
