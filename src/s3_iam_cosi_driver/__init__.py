"""S3 IAM COSI driver: bucket and access provisioning on S3-compatible backends."""

__version__ = "0.1.0"
