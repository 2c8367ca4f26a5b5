"""Compliance webhook client with exponential backoff retry logic"""

import httpx
import asyncio
from typing import Dict, Any
from kyc_gateway.config import settings
from kyc_gateway.infrastructure.observability.metrics import webhook_latency_histogram, webhook_failure_counter


class ComplianceWebhookClient:
    """Client for notifying the compliance team of actionable fraud alerts"""

    def __init__(self, webhook_url: str | None = None, timeout: float | None = None):
        self.webhook_url = webhook_url or settings.compliance_webhook_url
        self.timeout = timeout or settings.webhook_timeout_seconds
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base

    async def send_fraud_alert(self, payload: Dict[str, Any]) -> None:
        """
        Send a fraud alert event to the compliance webhook with retry logic.

        Retry strategy:
        - Exponential backoff: backoff_base * 2^(attempt - 1) between attempts
        - Retries on 5xx errors and network failures
        - 4xx responses are raised immediately
        - Tracks latency histogram and failure counter

        Args:
            payload: Alert event data
        """
        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            while attempt < self.max_retries:
                try:
                    with webhook_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=payload)
                        response.raise_for_status()
                        return  # Success

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    webhook_failure_counter.inc()

                    # 4xx is not retryable
                    if isinstance(e, httpx.HTTPStatusError) and e.response.status_code < 500:
                        raise

                    if attempt >= self.max_retries:
                        # Final failure after all retries
                        raise

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)
