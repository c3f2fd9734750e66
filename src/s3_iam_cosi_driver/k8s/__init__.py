"""Kubernetes lookups of COSI resources."""
