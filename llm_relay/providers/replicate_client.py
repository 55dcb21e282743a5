"""Minimal async client for the Replicate predictions API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from llm_relay.errors import UpstreamError
from llm_relay.settings import RelaySettings, get_settings

from .connection_pool import HTTPConnectionPool, get_connection_pool

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {"succeeded", "failed", "canceled"}


class ReplicateClient:
    """Runs a model and returns its ``output``.

    ``owner/name:version`` models are run through ``/predictions``; bare
    ``owner/name`` models through the official-model endpoint. The request
    asks Replicate to hold the connection open (``Prefer: wait``) and falls
    back to polling when the prediction is still running.
    """

    def __init__(
        self,
        api_token: str,
        settings: RelaySettings | None = None,
        connection_pool: HTTPConnectionPool | None = None,
    ):
        self.api_token = api_token
        self.settings = settings or get_settings()
        self.pool = connection_pool or get_connection_pool()

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
            "Prefer": f"wait={self.settings.replicate_wait_seconds}",
        }

    def _prediction_request(self, model: str, input: dict[str, Any]) -> tuple[str, dict]:
        base_url = self.settings.replicate_base_url
        if ":" in model:
            _, version = model.split(":", 1)
            return f"{base_url}/predictions", {"version": version, "input": input}
        return f"{base_url}/models/{model}/predictions", {"input": input}

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        try:
            detail = response.json().get("detail", response.text)
        except ValueError:
            detail = response.text
        raise UpstreamError(
            f"Replicate API error ({response.status_code}): {detail}",
            status_code=response.status_code,
        )

    async def run(self, model: str, input: dict[str, Any]) -> Any:
        """Create a prediction and wait for its output.

        Raises:
            UpstreamError: On HTTP errors, failed/canceled predictions, or
                when polling gives up
        """
        url, body = self._prediction_request(model, input)
        logger.debug(f"Creating Replicate prediction for {model}")
        response = await self.pool.post(
            url, headers=self.headers, json=body, timeout=self.settings.request_timeout
        )
        self._raise_for_status(response)
        prediction = response.json()

        polls = 0
        while prediction.get("status") not in TERMINAL_STATUSES:
            if polls >= self.settings.replicate_max_polls:
                raise UpstreamError(
                    f"Prediction {prediction.get('id')} still "
                    f"{prediction.get('status')} after {polls} polls"
                )
            get_url = (prediction.get("urls") or {}).get("get")
            if not get_url:
                raise UpstreamError(f"Prediction {prediction.get('id')} has no poll URL")

            await asyncio.sleep(self.settings.replicate_poll_interval)
            polls += 1
            response = await self.pool.get(
                get_url, headers=self.headers, timeout=self.settings.request_timeout
            )
            self._raise_for_status(response)
            prediction = response.json()

        if prediction["status"] != "succeeded":
            raise UpstreamError(
                f"Prediction {prediction['status']}: {prediction.get('error') or 'unknown error'}"
            )
        return prediction.get("output")
