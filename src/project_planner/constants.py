STATE_DIR_NAME = ".project_planner"
CONFIG_FILE = "config.yaml"
PROJECTS_FILE = "projects.yaml"
TASKS_FILE = "tasks.yaml"
PLANS_DIR = "plans"
ARTIFACTS_DIR = "artifacts"
PLAN_EVENTS_FILE = "plan_events.jsonl"

WINDOWS_LOCK_BYTES = 4096
STORE_SCHEMA_VERSION = 1

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_LOG_LEVEL = "INFO"

TASK_NUMBER_PREFIX = "TASK-"
