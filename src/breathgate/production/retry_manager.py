"""
Production Retry Manager

Bounded retry with exponential backoff and jitter for opening sensor
channels. Retries only happen inside a single caller-initiated connect;
nothing here reconnects on its own after a drop.
"""

import time
import random
import asyncio
import logging
from typing import Any, Callable, Dict, Optional
from dataclasses import dataclass

import serial

log = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Attempt budget and backoff for one named operation"""
    max_attempts: int = 3
    base_delay: float = 0.1
    max_delay: float = 5.0
    jitter: bool = True
    multiplier: float = 2.0
    retryable_exceptions: tuple = (OSError,)

    def should_retry(self, exception: Exception, attempt: int) -> bool:
        return (
            attempt < self.max_attempts - 1 and
            isinstance(exception, self.retryable_exceptions)
        )

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given zero-based attempt failed"""
        delay = min(self.base_delay * (self.multiplier ** attempt), self.max_delay)

        if self.jitter and delay > 0:
            jitter_range = delay * 0.1
            delay += random.uniform(-jitter_range, jitter_range)

        return max(0.0, delay)


class ProductionRetryManager:
    """Retry manager with named policies for transport connects"""

    def __init__(self, default_configs: Optional[Dict[str, RetryConfig]] = None):
        self.default_configs: Dict[str, RetryConfig] = {
            # USB serial devices can take a moment to enumerate after plug-in
            'serial_open': RetryConfig(
                max_attempts=3,
                base_delay=0.25,
                max_delay=2.0,
                retryable_exceptions=(serial.SerialException,)
            ),
            'socket_connect': RetryConfig(
                max_attempts=3,
                base_delay=0.5,
                max_delay=4.0,
                retryable_exceptions=(OSError,)
            ),
        }
        if default_configs:
            self.default_configs.update(default_configs)

        self.metrics: Dict[str, Any] = {
            'total_retries': 0,
            'successful_retries': 0,
            'failed_retries': 0,
            'total_retry_time': 0.0,
            'exceptions_by_type': {},
        }

    def retry_async(self, operation: Callable, config_name: str, *args, **kwargs):
        """
        Wrap an async operation with retry logic

        Returns:
            Coroutine function that runs the operation with retries and
            re-raises the last error once the budget is spent
        """
        config = self._get_config(config_name)

        async def retry_wrapper():
            start_time = time.time()

            for attempt in range(config.max_attempts):
                try:
                    result = await operation(*args, **kwargs)
                    self._record_success(config_name, attempt, time.time() - start_time)
                    return result

                except Exception as e:
                    self._track_exception(e)

                    if not config.should_retry(e, attempt):
                        self._record_failure(config_name, attempt + 1, time.time() - start_time, e)
                        raise

                    delay = config.delay_for(attempt)
                    log.debug(f"Attempt {attempt + 1} failed for {config_name}: {e}; "
                              f"retrying in {delay:.2f}s")
                    await asyncio.sleep(delay)

        return retry_wrapper

    def set_max_attempts(self, name: str, max_attempts: int):
        """Override the attempt budget of a named policy"""
        config = self._get_config(name)
        config.max_attempts = max(1, int(max_attempts))
        self.default_configs[name] = config

    def get_metrics(self) -> Dict[str, Any]:
        total_attempts = (self.metrics['successful_retries'] +
                          self.metrics['failed_retries'])

        return {
            **self.metrics,
            'total_attempts': total_attempts,
            'success_rate': (
                (self.metrics['successful_retries'] / max(1, total_attempts)) * 100
            ),
        }

    def _track_exception(self, error: Exception):
        exc_type = type(error).__name__
        self.metrics['exceptions_by_type'][exc_type] = (
            self.metrics['exceptions_by_type'].get(exc_type, 0) + 1
        )

    def _record_success(self, config_name: str, attempt: int, elapsed: float):
        if attempt == 0:
            return
        self.metrics['successful_retries'] += 1
        self.metrics['total_retries'] += attempt
        self.metrics['total_retry_time'] += elapsed
        log.info(f"✓ Retry successful for {config_name} (attempt {attempt + 1})")

    def _record_failure(self, config_name: str, attempts: int, elapsed: float,
                        error: Optional[Exception]):
        self.metrics['failed_retries'] += 1
        self.metrics['total_retries'] += attempts
        self.metrics['total_retry_time'] += elapsed
        log.warning(f"{config_name} failed after {attempts} attempt(s): {error}")

    def _get_config(self, name: str) -> RetryConfig:
        if name in self.default_configs:
            return self.default_configs[name]

        log.warning(f"Retry config '{name}' not found, using default")
        return RetryConfig()
