"""
ASGI config for HMS project.

Served by any ASGI server (Uvicorn, Daphne). The same application can run
on AWS Lambda behind API Gateway through Mangum.
"""
import os

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

from django.core.asgi import get_asgi_application

# Initialize Django at import time so Lambda pays the cost at container start
application = get_asgi_application()

_lambda_handler = None


def get_lambda_handler():
    """
    Returns a Mangum-wrapped handler for AWS Lambda.

    Mangum is an optional dependency (``pip install hms[lambda]``).
    """
    try:
        from mangum import Mangum
    except ImportError:
        raise ImportError(
            "Mangum is required for Lambda deployment. "
            "Install with: pip install 'hms[lambda]'"
        )
    return Mangum(application, lifespan="off")


def lambda_handler(event, context):
    """AWS Lambda entry point for HTTP requests."""
    global _lambda_handler
    if _lambda_handler is None:
        _lambda_handler = get_lambda_handler()
    return _lambda_handler(event, context)
