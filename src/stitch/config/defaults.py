"""Default configuration values for Stitch."""

from stitch.models.service import InstanceSettings

DEFAULT_CONFIG_FILE = "stitch.yaml"

# Poll driver
DEFAULT_POLL_INTERVAL_SECONDS = 5.0

# Health probe
DEFAULT_PROBE_TIMEOUT_SECONDS = 10.0

# Applied when a service declares no instance settings
DEFAULT_INSTANCE_SETTINGS = InstanceSettings(
    image_id="ami-0440d3b780d96b29d",
    instance_type="t2.medium",
    storage_size_gb=8,
)

DEFAULT_AWS_REGION = "us-east-1"
