"""Settings resolution and logging setup.

The data root is resolved exactly once at startup and handed to every
repository, so nothing below the CLI looks at the process location again.
"""
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

DATA_FOLDER_NAME = 'Data'


def setup_logging(level: str = 'WARNING') -> logging.Logger:
    """Configure the root commdesk logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to WARNING so normal use is quiet.

    Returns:
        Configured logger instance.
    """
    numeric = getattr(logging, str(level).upper(), logging.WARNING)
    logger = logging.getLogger('commdesk')
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
        logger.addHandler(handler)
    logger.setLevel(numeric)
    return logger


def program_dir() -> str:
    """Return the directory holding the running program.

    A frozen build reports its own executable; a plain interpreter run uses
    the entry script, falling back to the working directory in a REPL.
    """
    if getattr(sys, 'frozen', False):
        return os.path.dirname(os.path.abspath(sys.executable))
    script = sys.argv[0] if sys.argv and sys.argv[0] else ''
    if script and os.path.exists(script):
        return os.path.dirname(os.path.abspath(script))
    return os.getcwd()


def default_data_root() -> str:
    return os.path.join(program_dir(), DATA_FOLDER_NAME)


@dataclass
class Settings:
    """Runtime configuration shared by every repository and service.

    Fields:
        data_root: Absolute path of the data directory.
        log_level: Name of the log level for the ``commdesk`` logger.
        import_allowed: Extra path prefixes accepted by ``DataService.import_data``.
    """
    data_root: str
    log_level: str = 'WARNING'
    import_allowed: List[str] = field(default_factory=list)


def load_settings(data_root: Optional[str] = None,
                  log_level: Optional[str] = None) -> Settings:
    """Build :class:`Settings` from arguments, environment and defaults.

    Explicit arguments win over ``COMMDESK_*`` environment variables, which
    win over the built-in defaults.  The data root is created if missing.
    """
    load_dotenv()
    root = data_root or os.getenv('COMMDESK_DATA_DIR') or default_data_root()
    root = os.path.abspath(os.path.expanduser(root))
    os.makedirs(root, exist_ok=True)

    level = log_level or os.getenv('COMMDESK_LOG_LEVEL') or 'WARNING'

    allowed_env = os.getenv('COMMDESK_IMPORT_ALLOWED', '')
    allowed = [p for p in allowed_env.split(os.pathsep) if p.strip()]

    return Settings(data_root=root, log_level=level.upper(), import_allowed=allowed)
