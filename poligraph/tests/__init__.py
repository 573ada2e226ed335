"""Tests for the poligraph package."""
