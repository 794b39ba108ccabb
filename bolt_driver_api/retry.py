# bolt_driver_api/retry.py

import time
import logging
from dataclasses import dataclass

from .exceptions import DatabaseError, InvalidPhoneError, SmsLimitError, ValidationError

logger = logging.getLogger('bolt_driver.retry')


@dataclass(frozen=True)
class RetryPolicy:
    """
    Cool-downs for retrying phone authentication

    ``max_attempts`` counts the first call.
    """
    max_attempts: int = 3
    sms_limit_cooldown: float = 30.0
    server_error_cooldown: float = 5.0

    def cooldown_for(self, error):
        """Seconds to wait before retrying after ``error``, or None to give up"""
        if isinstance(error, (ValidationError, InvalidPhoneError)):
            return None
        if isinstance(error, SmsLimitError):
            return self.sms_limit_cooldown
        if isinstance(error, DatabaseError):
            return self.server_error_cooldown
        return None


def run_with_retry(func, policy=None, sleep=time.sleep, on_retry=None):
    """
    Call ``func`` until it succeeds or the policy gives up

    Args:
        func (callable): Zero-argument callable to run
        policy (RetryPolicy, optional): Retry limits and cool-downs
        sleep (callable, optional): Used to wait between attempts
        on_retry (callable, optional): Called as ``on_retry(attempt, error, delay)``
            before each wait

    Returns:
        tuple: ``(result, attempts)``

    Raises:
        BoltApiError: The last error once retries are exhausted, or the first
            error the policy does not retry
    """
    policy = policy or RetryPolicy()
    attempt = 0
    while True:
        attempt += 1
        try:
            return func(), attempt
        except (SmsLimitError, DatabaseError, ValidationError, InvalidPhoneError) as e:
            delay = policy.cooldown_for(e)
            if delay is None or attempt >= policy.max_attempts:
                raise
            logger.warning(f"Attempt {attempt}/{policy.max_attempts} failed ({e}), "
                           f"retrying in {delay:g}s")
            if on_retry is not None:
                on_retry(attempt, e, delay)
            sleep(delay)
