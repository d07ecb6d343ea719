# eastlink/core/logging.py
import logging
import os
import time
from logging.handlers import RotatingFileHandler

from fastapi import Request

from eastlink.core.config import settings

HTTP = 15  # between DEBUG and INFO
logging.addLevelName(HTTP, "HTTP")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger("eastlink")
http_logger = logging.getLogger("eastlink.http")
_security = logging.getLogger("eastlink.security")
_business = logging.getLogger("eastlink.business")

_configured = False


def setup_logging(level: str = None, log_dir: str = None, to_file: bool = None):
    """Attach console and rotating file handlers to the ``eastlink`` logger tree."""
    global _configured
    if _configured:
        return logger

    level = level or settings.LOG_LEVEL
    log_dir = log_dir or settings.LOG_DIR
    to_file = settings.LOG_TO_FILE if to_file is None else to_file

    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    if to_file:
        os.makedirs(log_dir, exist_ok=True)
        combined = RotatingFileHandler(
            os.path.join(log_dir, "combined.log"), maxBytes=5 * 1024 * 1024, backupCount=5
        )
        combined.setFormatter(formatter)
        logger.addHandler(combined)

        errors = RotatingFileHandler(
            os.path.join(log_dir, "error.log"), maxBytes=5 * 1024 * 1024, backupCount=5
        )
        errors.setLevel(logging.ERROR)
        errors.setFormatter(formatter)
        logger.addHandler(errors)

    logger.propagate = False
    _configured = True
    return logger


async def http_logging_middleware(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration = int((time.perf_counter() - start) * 1000)
    message = f"{request.method} {request.url.path} {response.status_code} - {duration}ms"
    if response.status_code >= 400:
        http_logger.error(message)
    else:
        http_logger.log(HTTP, message)
    return response


class security_log:
    @staticmethod
    def login_attempt(email: str, ip: str, success: bool):
        _security.info(f"Login attempt - Email: {email}, IP: {ip}, Success: {success}")

    @staticmethod
    def suspicious_activity(activity: str, ip: str, user_agent: str):
        _security.warning(f"Suspicious activity - {activity}, IP: {ip}, User-Agent: {user_agent}")

    @staticmethod
    def rate_limit_exceeded(ip: str, endpoint: str):
        _security.warning(f"Rate limit exceeded - IP: {ip}, Endpoint: {endpoint}")

    @staticmethod
    def unauthorized_access(ip: str, endpoint: str, user_id: str):
        _security.warning(f"Unauthorized access attempt - IP: {ip}, Endpoint: {endpoint}, User: {user_id}")


class business_log:
    @staticmethod
    def order_created(order_id: str, user_id: str, amount: float):
        _business.info(f"Order created - ID: {order_id}, User: {user_id}, Amount: {amount}")

    @staticmethod
    def payment_processed(order_id: str, amount: float, method: str):
        _business.info(f"Payment processed - Order: {order_id}, Amount: {amount}, Method: {method}")

    @staticmethod
    def product_created(product_id: str, seller_id: str, name: str):
        _business.info(f"Product created - ID: {product_id}, Seller: {seller_id}, Name: {name}")

    @staticmethod
    def user_registered(user_id: str, email: str, role: str):
        _business.info(f"User registered - ID: {user_id}, Email: {email}, Role: {role}")
