"""Client for the remote withdrawal proof engine."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Protocol

import httpx

from .errors import NetworkError, ProverError
from .hashing import from_hex
from .models import WithdrawalProof, WithdrawalWitness


class ProofEngine(Protocol):
    """Anything able to turn a withdrawal witness into a proof."""

    async def prove(self, witness: WithdrawalWitness) -> WithdrawalProof:  # pragma: no cover - protocol
        """Return the proof for ``witness``; may take several seconds."""

    async def close(self) -> None:  # pragma: no cover - protocol
        """Release any held connections."""


class HttpProverClient:
    """Posts witnesses to a prover service and waits for the proof."""

    def __init__(
        self,
        url: str,
        *,
        api_key: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 300.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        request_headers = dict(headers or {})
        if api_key:
            request_headers.setdefault("Authorization", f"Bearer {api_key}")
        self._url = url.rstrip("/") + "/v1/withdrawal-proofs"
        self._client = httpx.AsyncClient(timeout=timeout, headers=request_headers, transport=transport)

    async def prove(self, witness: WithdrawalWitness) -> WithdrawalProof:
        try:
            response = await self._client.post(self._url, json={"witness": witness.to_payload()})
        except httpx.HTTPError as exc:
            raise NetworkError(f"Prover request failed: {exc}") from exc
        if response.status_code >= 400:
            try:
                detail = response.json().get("detail")
            except (json.JSONDecodeError, AttributeError):
                detail = None
            raise ProverError(str(detail or f"Prover HTTP {response.status_code}"), code=response.status_code)
        try:
            data: Any = response.json()
        except json.JSONDecodeError as exc:
            raise ProverError("Invalid prover response") from exc
        if not isinstance(data, dict) or "proof" not in data or "publicInputs" not in data:
            raise ProverError("Prover returned an invalid proof payload")
        try:
            return WithdrawalProof(
                public_inputs=from_hex(str(data["publicInputs"])),
                proof=from_hex(str(data["proof"])),
            )
        except ValueError as exc:
            raise ProverError(f"Prover returned malformed hex: {exc}") from exc

    async def close(self) -> None:
        await self._client.aclose()


__all__ = ["HttpProverClient", "ProofEngine"]
