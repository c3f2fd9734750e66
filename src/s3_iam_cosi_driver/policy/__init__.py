"""Bucket policy documents and access-mode action sets."""
