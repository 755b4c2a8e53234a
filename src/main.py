"""
AWS Lambda entry point for the Bicep Drift Detector.

Lets a scheduled function scan an Azure resource group against a baseline
packaged with (or mounted into) the function, using recorded exports from S3 when
Azure credentials are not available to it.
"""

import json

from .config import load_config
from .drift_detector import detect_drift
from .drift_detector.baseline import BaselineError
from .utils import setup_logging


def _response(status_code: int, body: dict) -> dict:
    return {
        'statusCode': status_code,
        'body': json.dumps(body),
        'headers': {
            'Content-Type': 'application/json'
        }
    }


def lambda_handler(event: dict, context: object) -> dict:
    """
    AWS Lambda handler function.

    Args:
        event: Lambda event data
        context: Lambda context

    Returns:
        Dictionary with statusCode and body containing drift report
    """
    logger = setup_logging()
    try:
        # Load and validate configuration
        config = load_config()

        # Setup logging
        logger = setup_logging(config.log_level)
        logger.info("Starting Bicep drift detection")

        # Perform drift detection
        drift_report = detect_drift(config)

        logger.info(
            f"Drift detection completed. "
            f"Drift detected: {drift_report.get('drift_detected', False)}"
        )
        return _response(200, drift_report)

    except ValueError as e:
        # Configuration or validation errors
        logger.error(f"Configuration error: {str(e)}")
        return _response(400, {'error': 'Configuration error', 'message': str(e)})

    except BaselineError as e:
        logger.error(f"Baseline error: {str(e)}")
        return _response(422, {'error': 'Baseline error', 'message': str(e)})

    except Exception as e:
        # Unexpected errors
        logger.error(f"Unexpected error: {str(e)}")
        return _response(500, {'error': 'Internal server error', 'message': str(e)})
