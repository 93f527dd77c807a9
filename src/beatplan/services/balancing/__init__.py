"""Sector balancing passes."""
