import logging
import time

import requests

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10


def notify_evaluation_api(url: str, payload: dict, max_attempts: int = 5, initial_delay: float = 1.0) -> bool:
    """
    Send repo metadata to the evaluation API with exponential backoff retry.
    Waits 1s, 2s, 4s, 8s between the five attempts.
    Returns True on the first 2xx response, False once every attempt has failed.
    Never raises: callback delivery must not affect the outcome of a build.
    """
    if not url:
        logger.warning("⚠️ No evaluation URL provided")
        return False

    headers = {"Content-Type": "application/json"}
    delay = initial_delay

    for attempt in range(1, max_attempts + 1):
        try:
            response = requests.post(url, json=payload, headers=headers, timeout=REQUEST_TIMEOUT)
            if 200 <= response.status_code < 300:
                logger.info(f"✅ Evaluation API notified (HTTP {response.status_code} on attempt {attempt})")
                return True
            logger.warning(f"⚠️ Evaluation API returned HTTP {response.status_code} (attempt {attempt}/{max_attempts})")
        except requests.exceptions.RequestException as e:
            logger.warning(f"⚠️ Evaluation API error: {e} (attempt {attempt}/{max_attempts})")

        if attempt < max_attempts:
            logger.info(f"   Retrying in {delay:g}s...")
            time.sleep(delay)
            delay *= 2

    logger.error(f"❌ Failed to notify evaluation API after {max_attempts} attempts")
    return False
