import os
import sys
import traceback
from pathlib import Path

from dotenv import load_dotenv

# Load .env before settings are read
env_path = Path(__file__).resolve().parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def _unhandled_exception(exc_type, exc_value, exc_tb):
    """Print unhandled exceptions with a traceback before exiting."""
    if exc_type is KeyboardInterrupt:
        sys.__excepthook__(exc_type, exc_value, exc_tb)
        return
    msg = "".join(traceback.format_exception(exc_type, exc_value, exc_tb))
    print("Unhandled exception:\n" + msg, file=sys.stderr, flush=True)


if __name__ == "__main__":
    """
    Entry point for Storyshelf.
    Runs one CLI command against the configured backend.
    """
    # Ensure the current directory is in sys.path so imports work correctly
    root_dir = os.path.dirname(os.path.abspath(__file__))
    sys.path.insert(0, root_dir)

    sys.excepthook = _unhandled_exception

    from storyshelf.cli import main

    sys.exit(main())
