"""Async HTTP mixin with retry and error handling shared by delivery clients.

Provides:
- Exponential backoff retry logic
- Single-send mode for non-idempotent deliveries
- Tolerance of 2xx responses whose body is not JSON
- Structured logging with channel context
- Conversion of exhausted retries into ``DeliveryError``
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from ..core.config import DeliveryConfig, RetryPolicyConfig
from ..core.exceptions import DeliveryError
from ..core.logger import get_logger

logger = get_logger("delivery.http")

# Failures raised before the request left this process
UNSENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)


def _json_body(response: httpx.Response) -> dict[str, Any]:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        logger.debug("Response from %s is not JSON; ignoring body", response.request.url)
        return {}


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts.
        backoff_seconds: Initial backoff delay in seconds.
        backoff_multiplier: Multiplier for exponential backoff.
        max_backoff_seconds: Maximum backoff delay.
    """

    max_attempts: int = 3
    backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    max_backoff_seconds: float = 30.0

    @classmethod
    def from_policy(cls, policy: RetryPolicyConfig | None) -> RetryConfig:
        if policy is None:
            return cls()
        return cls(
            max_attempts=policy.max_attempts,
            backoff_seconds=policy.backoff_seconds,
            backoff_multiplier=policy.backoff_multiplier,
            max_backoff_seconds=policy.max_backoff_seconds,
        )


class AsyncHTTPDeliveryMixin:
    """Mixin providing async HTTP requests with retry for delivery clients.

    Usage:
        class MyClient(AsyncHTTPDeliveryMixin):
            async def send(self, url: str, payload: dict) -> dict:
                return await self._request_with_retry(
                    client=self._client,
                    url=url,
                    payload=payload,
                    retry_policy=self._retry,
                    channel="my-channel",
                )
    """

    async def _request_with_retry(
        self,
        client: httpx.AsyncClient,
        url: str,
        payload: dict[str, Any] | None,
        retry_policy: RetryPolicyConfig | None,
        channel: str,
        *,
        response_validator: Callable[[dict[str, Any]], None] | None = None,
        method: str = "POST",
        headers: dict[str, str] | None = None,
        resend: bool = True,
    ) -> dict[str, Any]:
        """Make an async HTTP request with exponential backoff retry.

        Args:
            client: httpx AsyncClient instance.
            url: Target URL.
            payload: Request JSON payload.
            retry_policy: Retry configuration (optional).
            channel: Delivery channel name for logging and errors.
            response_validator: Optional callable to validate the response.
                Should raise ValueError if the response is invalid.
            method: HTTP method (default: POST).
            headers: Additional headers for the request.
            resend: Whether a request that may have reached the server can be
                sent again. When False only connection failures are retried.

        Returns:
            Response JSON data (empty dict for bodiless responses).

        Raises:
            DeliveryError: If the response is rejected or all retries fail.
        """
        config = RetryConfig.from_policy(retry_policy)

        delay = config.backoff_seconds
        last_error: Exception | None = None

        for attempt in range(config.max_attempts):
            try:
                response = await client.request(method.upper(), url, json=payload, headers=headers)
                response.raise_for_status()
                result = _json_body(response)

                if response_validator:
                    response_validator(result)

                return result

            except ValueError as e:
                # Response validation error - don't retry
                logger.error(
                    "Delivery response rejected",
                    extra={"channel": channel, "url": url, "error": str(e)},
                )
                raise DeliveryError(str(e), channel=channel) from e

            except httpx.HTTPStatusError as e:
                last_error = e
                status_code = e.response.status_code
                # Client errors other than rate limiting will not succeed on retry
                if not resend or (400 <= status_code < 500 and status_code != 429):
                    logger.error(
                        "Delivery request rejected",
                        extra={"channel": channel, "url": url, "status_code": status_code},
                    )
                    break
                if attempt < config.max_attempts - 1:
                    logger.warning(
                        "Delivery request failed, retrying",
                        extra={
                            "channel": channel,
                            "url": url,
                            "attempt": attempt + 1,
                            "max_attempts": config.max_attempts,
                            "status_code": status_code,
                            "retry_delay": delay,
                        },
                    )
                    await asyncio.sleep(delay)
                    delay = min(delay * config.backoff_multiplier, config.max_backoff_seconds)
                else:
                    logger.error(
                        "Delivery request failed after all retries",
                        extra={
                            "channel": channel,
                            "url": url,
                            "attempts": config.max_attempts,
                            "status_code": status_code,
                        },
                    )

            except httpx.HTTPError as e:
                last_error = e
                if not resend and not isinstance(e, UNSENT_ERRORS):
                    logger.error(
                        "Delivery request errored after it may have been sent",
                        extra={"channel": channel, "url": url, "error": str(e)},
                    )
                    break
                if attempt < config.max_attempts - 1:
                    logger.warning(
                        "Delivery request errored, retrying",
                        extra={
                            "channel": channel,
                            "url": url,
                            "attempt": attempt + 1,
                            "max_attempts": config.max_attempts,
                            "error": str(e),
                            "retry_delay": delay,
                        },
                    )
                    await asyncio.sleep(delay)
                    delay = min(delay * config.backoff_multiplier, config.max_backoff_seconds)
                else:
                    logger.error(
                        "Delivery request errored after all retries",
                        extra={
                            "channel": channel,
                            "url": url,
                            "attempts": config.max_attempts,
                            "error": str(e),
                        },
                    )

        if isinstance(last_error, httpx.HTTPStatusError):
            raise DeliveryError(
                f"{channel} request failed with HTTP {last_error.response.status_code}",
                channel=channel,
            ) from last_error
        if last_error:
            raise DeliveryError(f"{channel} request failed: {last_error}", channel=channel) from last_error
        raise DeliveryError(f"{channel} request failed", channel=channel)


class BaseDeliveryClient(AsyncHTTPDeliveryMixin):
    """Owns an ``httpx.AsyncClient`` configured from ``DeliveryConfig``.

    Deliveries are not idempotent, so a request is never sent twice; only a
    failed connection attempt may be retried.
    """

    channel = "delivery"

    def __init__(
        self,
        config: DeliveryConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or DeliveryConfig()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.config.timeout)

    async def _send(
        self,
        url: str,
        payload: dict[str, Any] | None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        return await self._request_with_retry(
            client=self._client,
            url=url,
            payload=payload,
            retry_policy=self.config.retry,
            channel=self.channel,
            resend=False,
            **kwargs,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["AsyncHTTPDeliveryMixin", "BaseDeliveryClient", "RetryConfig"]
