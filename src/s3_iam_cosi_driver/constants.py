"""Constants for the S3 IAM COSI driver."""

# Driver
DRIVER_NAME = "s3-iam.objectstorage.k8s.io"
CONTROLLER_NAME = "s3-iam-cosi-driver"

# COSI API
COSI_API_GROUP = "objectstorage.k8s.io"
COSI_API_VERSION = "v1alpha1"
PLURAL_BUCKETS = "buckets"
PLURAL_BUCKET_ACCESSES = "bucketaccesses"
PLURAL_BUCKET_ACCESS_CLASSES = "bucketaccessclasses"
BUCKET_ACCESS_ID_PREFIX = "ba-"

# Access modes
ACCESS_MODE_READ_ONLY = "ro"
ACCESS_MODE_READ_WRITE = "rw"
ACCESS_MODE_WRITE_ONLY = "wo"
ACCESS_MODE_LIST_ONLY = "lo"
ACCESS_MODE_ADMIN = "admin"

# Annotations
ANNOTATION_ACCESS_MODE = f"{DRIVER_NAME}/access-mode"

# IAM
PRINCIPAL_NAME_PREFIX = "cosi-user-"
MAX_ACCESS_KEYS_PER_USER = 2
DEFAULT_IAM_REGION = "us-east-1"

# Policy documents
POLICY_VERSION = "2012-10-17"
BUCKET_ARN_PREFIX = "arn:aws:s3:::"
WILDCARD_PRINCIPAL = "*"
WILDCARD_ACTION = "s3:*"
PRINCIPAL_KEY_AWS = "AWS"

# Backend error codes
ERROR_CODES_NOT_FOUND = frozenset({"NoSuchEntity", "NoSuchBucketPolicy", "NoSuchBucket", "NoSuchKey"})
ERROR_CODES_ALREADY_EXISTS = frozenset({"EntityAlreadyExists", "BucketAlreadyExists", "BucketAlreadyOwnedByYou"})

# Account secret keys
SECRET_KEY_ENDPOINT = "Endpoint"
SECRET_KEY_S3_PORT = "S3Port"
SECRET_KEY_IAM_PORT = "IAMPort"
SECRET_KEY_ACCOUNT_NAME = "AccountName"
SECRET_KEY_ACCESS_KEY = "AccessKey"
SECRET_KEY_SECRET_KEY = "SecretKey"
SECRET_KEY_REGION = "Region"
SECRET_KEY_TLS_CERT = "TlsCert"

# COSI parameters
PARAM_ACCOUNT_SECRET = "accountSecret"
PARAM_ACCOUNT_SECRET_NAMESPACE = "accountSecretNamespace"

# Operations
OP_CREATE_BUCKET = "create_bucket"
OP_DELETE_BUCKET = "delete_bucket"
OP_GRANT_ACCESS = "grant_access"
OP_REVOKE_ACCESS = "revoke_access"

# Event reasons
EVENT_REASON_BUCKET_CREATED = "BucketCreated"
EVENT_REASON_BUCKET_EXISTS = "BucketExists"
EVENT_REASON_BUCKET_DELETED = "BucketDeleted"
EVENT_REASON_ACCESS_GRANTED = "AccessGranted"
EVENT_REASON_ACCESS_REVOKED = "AccessRevoked"
EVENT_REASON_REQUEST_FAILED = "RequestFailed"
