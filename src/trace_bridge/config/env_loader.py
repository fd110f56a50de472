"""Environment variable file loader with priority-based loading."""

from enum import Enum
from pathlib import Path

from dotenv import load_dotenv

from trace_bridge.telemetry.logger import get_logger

log = get_logger(__name__)


class Environment(str, Enum):
    """Deployment environment of a testbed node."""

    DEVELOPMENT = "development"
    TESTBED = "testbed"
    TEST = "test"


def get_environment() -> Environment:
    """Detect current environment from APP_ENV environment variable.

    Returns:
        Environment enum value.

    Environment variable mapping:
    - "testbed" or "lab" → Environment.TESTBED
    - "test" → Environment.TEST
    - Default → Environment.DEVELOPMENT

    Note: This reads os.environ directly because environment detection must
    happen before settings are loaded.
    """
    import os  # noqa: PLC0415

    app_env = os.getenv("APP_ENV", "").lower()

    if app_env in ("testbed", "lab"):
        return Environment.TESTBED
    elif app_env == "test":
        return Environment.TEST
    else:
        return Environment.DEVELOPMENT


def load_env_files(project_root: Path | None = None) -> list[Path]:
    """Load .env files in priority order.

    Priority order (highest to lowest):
    1. `.env.{environment}.local`
    2. `.env.{environment}`
    3. `.env.local`
    4. `.env`

    Explicitly exported environment variables always win over file values.

    Args:
        project_root: Directory holding the .env files. Defaults to the
            current working directory.

    Returns:
        The files that were found and loaded.
    """
    if project_root is None:
        project_root = Path.cwd()

    env_name = get_environment().value

    # Highest priority first: with override=False the first file to set a
    # variable wins.
    env_files = [
        project_root / f".env.{env_name}.local",
        project_root / f".env.{env_name}",
        project_root / ".env.local",
        project_root / ".env",
    ]

    loaded_files = []
    for env_file in env_files:
        if env_file.exists():
            load_dotenv(env_file, override=False)
            loaded_files.append(env_file)

    if loaded_files:
        log.info(
            "env_files_loaded",
            environment=env_name,
            files=[str(f.relative_to(project_root)) for f in loaded_files],
        )
    else:
        log.debug("no_env_files_found", environment=env_name, project_root=str(project_root))

    return loaded_files
