"""Rental management back office API."""
