"""
Version-control collaborator: restores source directories to their
committed state so that every run starts from a pristine baseline.
"""

import logging
import os
import subprocess

from log_injector.config import DEFAULT_CONFIG, LogInjectorConfig
from log_injector.exceptions import CheckoutError

logger = logging.getLogger(__name__)


def checkout_directory(directory: str, config: LogInjectorConfig = DEFAULT_CONFIG) -> None:
    """
    Run ``git checkout -- <directory>`` from inside the directory.

    Any failure raises CheckoutError: continuing on a half-restored tree
    would instrument files on top of earlier injections.
    """
    abs_dir = os.path.abspath(directory)
    if not os.path.isdir(abs_dir):
        raise CheckoutError(abs_dir, "directory does not exist")

    cmd = [config.git_executable, "checkout", "--", "."]
    logger.info(f"Checking out directory: {abs_dir}")

    try:
        result = subprocess.run(
            cmd,
            cwd=abs_dir,
            text=True,
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=config.checkout_timeout,
        )
        if result.stdout:
            logger.debug(f"git stdout: {result.stdout.strip()}")

    except FileNotFoundError as e:
        raise CheckoutError(abs_dir, f"'{config.git_executable}' executable not found") from e

    except subprocess.CalledProcessError as e:
        reason = (e.stderr or e.stdout or "").strip() or "git returned an error"
        raise CheckoutError(abs_dir, reason, exit_code=e.returncode) from e

    except subprocess.TimeoutExpired as e:
        raise CheckoutError(abs_dir, f"timed out after {config.checkout_timeout}s") from e
