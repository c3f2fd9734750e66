"""Builders turning COSI parameters into backend clients."""
