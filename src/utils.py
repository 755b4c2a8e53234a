"""
Utility functions for the Bicep Drift Detector.
"""

import functools
import json
import logging
from typing import Callable, Dict, Optional, TypeVar, cast
from urllib.parse import urlparse

import boto3
from azure.core.exceptions import AzureError, HttpResponseError


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """
    Sets up logging configuration for the drift detector.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("drift_detector")
    logger.setLevel(getattr(logging, log_level.upper()))

    # Prevent duplicate handlers
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


F = TypeVar("F", bound=Callable[..., object])


def exporter_error_handler(default: Callable[[], object] = dict) -> Callable[[F], F]:
    """
    Decorator for consistent error handling and logging around Azure calls.

    A failure for one resource or type must never abort the run, so AzureError
    (including 404s for resources deleted mid-scan) and generic Exception are
    logged and replaced with ``default()``.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: object, **kwargs: object) -> object:
            logger = setup_logging()
            try:
                return func(*args, **kwargs)
            except HttpResponseError as e:
                if e.status_code == 404:
                    logger.info(f"Resource not found in {func.__name__}; treating as absent.")
                    return default()
                logger.error(f"Azure HttpResponseError in {func.__name__}: {e.message}")
                return default()
            except AzureError as e:
                logger.error(f"AzureError in {func.__name__}: {e}")
                return default()
            except Exception as e:
                logger.error(f"Error in {func.__name__}: {e}")
                return default()

        return cast(F, wrapper)

    return decorator


def download_s3_file(s3_path: str, logger: Optional[logging.Logger] = None) -> str:
    """
    Downloads a file from S3 and returns its content as a string.

    Args:
        s3_path: S3 path in format 's3://bucket/key'
        logger: Logger instance for error logging

    Returns:
        File content as string

    Raises:
        ValueError: If S3 path is invalid
        Exception: If S3 download fails
    """
    if logger is None:
        logger = setup_logging()

    try:
        parsed = urlparse(s3_path)
        bucket = parsed.netloc
        key = parsed.path.lstrip("/")

        if not bucket or not key:
            raise ValueError(f"Invalid S3 path: {s3_path}")

        logger.info(f"Downloading S3 file: {s3_path}")
        s3_client = boto3.client("s3")
        response = s3_client.get_object(Bucket=bucket, Key=key)
        content_bytes = response["Body"].read()
        content = (
            content_bytes.decode("utf-8")
            if isinstance(content_bytes, bytes)
            else str(content_bytes)
        )
        logger.info(f"Successfully downloaded {len(content)} bytes from S3")
        return content

    except Exception as e:
        logger.error(f"Failed to download S3 file {s3_path}: {str(e)}")
        raise


def read_source(source: str, logger: Optional[logging.Logger] = None) -> str:
    """
    Reads a pre-recorded export or listing.

    Accepts 's3://bucket/key', 'local://path' or a plain filesystem path.
    """
    if logger is None:
        logger = setup_logging()

    if source.startswith("s3://"):
        return download_s3_file(source, logger)

    local_path = source[len("local://"):] if source.startswith("local://") else source
    logger.info(f"Reading local file: {local_path}")
    with open(local_path, "r", encoding="utf-8") as f:
        return f.read()


def parse_json_document(
    content: str, what: str = "document", logger: Optional[logging.Logger] = None
) -> Dict:
    """
    Parses an exported ARM template or a live resource listing.

    Args:
        content: Raw JSON text
        what: Short description used in log and error messages

    Returns:
        Parsed JSON object. A top-level list is wrapped as {"value": [...]},
        which is the shape 'az resource list' and the ARM REST API agree on.

    Raises:
        ValueError: If the content is not valid JSON or not an object/list
    """
    if logger is None:
        logger = setup_logging()

    try:
        logger.info(f"Parsing {what}")
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in {what}: {e}")
        raise ValueError(f"Invalid JSON in {what}: {e}")

    if isinstance(data, list):
        data = {"value": data}
    if not isinstance(data, dict):
        raise ValueError(f"The {what} did not parse to a dictionary.")
    return data
