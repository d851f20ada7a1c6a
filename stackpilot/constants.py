"""Centralized constants for stackpilot to eliminate duplicate strings."""

# Convergence
ERROR_SENTINEL = "error"

# Defaults
DEFAULT_TIMEOUT_MINUTES = 60
DEFAULT_POLLING_INTERVAL_SECONDS = 60
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_MANIFEST_PATH = "manifest/stackpilot.yaml"

# Capacity override not supplied on the command line
CAPACITY_NOT_SET = -1

# Autoscaling group naming: <application>-<stack>_v<NNN>
VERSION_SEPARATOR = "_v"
VERSION_DIGITS = 3

# Instance states reported by the backend
LIFECYCLE_IN_SERVICE = "InService"
HEALTH_HEALTHY = "Healthy"

# Replacement strategies
REPLACEMENT_BLUE_GREEN = "BlueGreen"

# Phase names used in log lines
STEP_CHECK_PREVIOUS = "StepCheckPrevious"
STEP_DEPLOY = "StepDeploy"
STEP_ADDITIONAL_WORK = "StepAdditionalWork"
STEP_TRIGGER_LIFECYCLE = "StepTriggerLifecycleCallbacks"
STEP_CLEAN_PREVIOUS = "StepCleanPreviousVersion"
STEP_GATHER_METRICS = "StepGatherMetrics"
STEP_API_TEST = "StepRunAPITest"
