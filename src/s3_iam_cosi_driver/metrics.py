"""Prometheus metrics for the S3 IAM COSI driver."""

from prometheus_client import Counter, Histogram

# Driver operation metrics
access_operations_total = Counter(
    "s3_iam_cosi_driver_access_operations_total",
    "Total number of driver operations",
    ["operation", "result"],
)

access_operation_duration_seconds = Histogram(
    "s3_iam_cosi_driver_access_operation_duration_seconds",
    "Duration of driver operations in seconds",
    ["operation"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

# Policy document edit metrics
policy_edits_total = Counter(
    "s3_iam_cosi_driver_policy_edits_total",
    "Total number of bucket policy transitions",
    ["transition", "outcome"],
)

# Identity metrics
credential_cap_reached_total = Counter(
    "s3_iam_cosi_driver_credential_cap_reached_total",
    "Number of credentials minted for principals already at the access key ceiling",
)

# Backend API call metrics
backend_call_total = Counter(
    "s3_iam_cosi_driver_backend_call_total",
    "Total number of backend API calls",
    ["api_type", "operation", "result"],
)

backend_call_duration_seconds = Histogram(
    "s3_iam_cosi_driver_backend_call_duration_seconds",
    "Duration of backend API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 15.0],
)
