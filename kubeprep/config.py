"""Configuration management for the kubeprep application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()

class Config:
    """Application configuration with sensible defaults."""

    # SSH defaults, used when a host in the manifest does not override them
    SSH_USER: str = os.getenv("SSH_USER", "root")
    SSH_KEY_PATH: str = os.getenv("SSH_KEY_PATH", "")
    SSH_PORT: int = int(os.getenv("SSH_PORT", "22"))

    # Timeouts (in seconds)
    SSH_TIMEOUT: int = int(os.getenv("SSH_TIMEOUT", "30"))
    COMMAND_TIMEOUT: int = int(os.getenv("COMMAND_TIMEOUT", "900"))  # 15 minutes
    REBOOT_GRACE_PERIOD: int = int(os.getenv("REBOOT_GRACE_PERIOD", "60"))

    # Remote staging directory for the configuration bundle
    WORK_DIR: str = os.getenv("WORK_DIR", "./kubeprep")

    # Upper bound on hosts processed at once in parallel steps (0 = one per host)
    MAX_WORKERS: int = int(os.getenv("MAX_WORKERS", "0"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    @classmethod
    def validate(cls) -> None:
        """Validate configuration values."""
        problems = []
        if not 0 < cls.SSH_PORT < 65536:
            problems.append(f"SSH_PORT out of range: {cls.SSH_PORT}")
        for name in ("SSH_TIMEOUT", "COMMAND_TIMEOUT"):
            if getattr(cls, name) <= 0:
                problems.append(f"{name} must be positive")
        if cls.REBOOT_GRACE_PERIOD < 0:
            problems.append("REBOOT_GRACE_PERIOD cannot be negative")
        if cls.MAX_WORKERS < 0:
            problems.append("MAX_WORKERS cannot be negative")
        if not cls.WORK_DIR:
            problems.append("WORK_DIR cannot be empty")
        if problems:
            raise ValueError(f"Invalid configuration: {', '.join(problems)}")

# Don't validate on import to allow for dynamic configuration
# Call Config.validate() explicitly when needed
