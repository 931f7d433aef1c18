"""Constants for the SFTPGo Operator."""

# API Group
API_GROUP = "sftpgo.sftpgo.io"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_SERVER = "SftpGoServer"
KIND_USER = "SftpGoUser"

# Plurals
PLURAL_SERVERS = "sftpgoservers"

# Child Kinds
KIND_CONFIG_MAP = "ConfigMap"
KIND_PVC = "PersistentVolumeClaim"
KIND_DEPLOYMENT = "Deployment"
KIND_SERVICE = "Service"

# Labels
LABEL_MANAGED_BY = "app.kubernetes.io/managed-by"
LABEL_NAME = "app.kubernetes.io/name"
LABEL_INSTANCE = "app.kubernetes.io/instance"
LABEL_SERVER_NAME = f"{API_GROUP}/server-name"

# Annotations
ANNOTATION_CONFIG_HASH = f"{API_GROUP}/config-hash"

# Finalizers
SERVER_FINALIZER = f"{API_GROUP}/finalizer"
USER_FINALIZER = f"{API_GROUP}/user-finalizer"

CONTROLLER_NAME = "sftpgo-operator"

# Server defaults
DEFAULT_IMAGE = "docker.io/drakkan/sftpgo:latest"
DEFAULT_REPLICAS = 1
DEFAULT_SFTP_PORT = 2022
DEFAULT_WEB_PORT = 8080
DEFAULT_STORAGE_BACKEND = "sqlite"
DEFAULT_DATA_MOUNT_PATH = "/srv/sftpgo"
DEFAULT_VOLUME_SIZE = "10Gi"
CONFIG_MOUNT_PATH = "/etc/sftpgo"
CONFIG_FILE_NAME = "sftpgo.json"
CONTAINER_NAME = "sftpgo"

# Admin secret keys
ADMIN_USERNAME_KEY = "username"
ADMIN_PASSWORD_KEY = "password"

# Phases
PHASE_RUNNING = "Running"
PHASE_PENDING = "Pending"
PHASE_ERROR = "Error"
PHASE_SYNCED = "Synced"

# Condition Types
COND_READY = "Ready"
COND_DEGRADED = "Degraded"

# Condition Reasons
REASON_RECONCILED = "Reconciled"
REASON_SYNCED = "Synced"
REASON_CONFIG_MAP_ERROR = "ConfigMapError"
REASON_PVC_ERROR = "PersistentVolumeClaimError"
REASON_DEPLOYMENT_ERROR = "DeploymentError"
REASON_SERVICE_ERROR = "ServiceError"
REASON_SERVER_NOT_FOUND = "ServerNotFound"
REASON_SECRET_NOT_FOUND = "SecretNotFound"
REASON_AUTH_ERROR = "AuthError"
REASON_AUTH_NOT_CONFIGURED = "AuthNotConfigured"
REASON_UNAUTHORIZED = "Unauthorized"
REASON_VALIDATION_ERROR = "ValidationError"
REASON_API_ERROR = "APIError"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_CHILD_APPLIED = "ChildApplied"
EVENT_REASON_USER_CREATED = "UserCreated"
EVENT_REASON_USER_UPDATED = "UserUpdated"
EVENT_REASON_USER_DELETED = "UserDeleted"
EVENT_REASON_CLEANUP_SKIPPED = "CleanupSkipped"
