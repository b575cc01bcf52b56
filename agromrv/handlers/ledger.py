"""
Ledger anchoring of MRV package hashes.

The pipeline only needs ``anchor(package_id, hash_hex) -> txId``; what sits
behind it is chosen by configuration, never inside business logic.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from agromrv.core.config import Settings, get_settings
from agromrv.core.exceptions import InputError, LedgerError, NotFoundError
from agromrv.models.audit import AuditAction, AuditLog
from agromrv.models.package import AnchorReceipt, MRVPackage
from agromrv.utils.hashing import hash_payload

logger = logging.getLogger(__name__)


class LedgerAnchor(ABC):
    """Submits a package hash somewhere durable and returns an opaque id."""

    @abstractmethod
    async def anchor(self, package_id: int, hash_hex: str) -> AnchorReceipt:
        ...


class SimulatedLedgerAnchor(LedgerAnchor):
    """Deterministic stand-in: same package and hash, same transaction id."""

    async def anchor(self, package_id: int, hash_hex: str) -> AnchorReceipt:
        return AnchorReceipt(tx_id=f"sim-{package_id}-{hash_hex[:10]}")


class HttpLedgerAnchor(LedgerAnchor):
    """Posts the hash to a ledger gateway and reads back its transaction id."""

    def __init__(
        self,
        gateway_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.gateway_url = gateway_url
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    async def anchor(self, package_id: int, hash_hex: str) -> AnchorReceipt:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        payload = {"packageId": str(package_id), "hash": hash_hex}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.gateway_url, json=payload, headers=headers)
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise LedgerError(
                f"Ledger submission failed for package {package_id}: {e}",
                context={"package_id": package_id, "gateway_url": self.gateway_url}
            ) from e

        if not isinstance(body, dict):
            raise LedgerError(
                f"Ledger gateway returned an unexpected body for package {package_id}",
                context={"package_id": package_id, "body_type": type(body).__name__}
            )

        tx_id = body.get("txId") or body.get("transactionHash")
        if not tx_id:
            raise LedgerError(
                f"Ledger gateway returned no transaction id for package {package_id}",
                context={"package_id": package_id}
            )
        return AnchorReceipt(tx_id=str(tx_id))


def get_ledger_anchor(settings: Optional[Settings] = None) -> LedgerAnchor:
    """Build the configured ledger anchor."""
    settings = settings or get_settings()
    mode = settings.ledger_mode.lower()

    if mode == "simulated":
        return SimulatedLedgerAnchor()
    if mode == "http":
        if not settings.ledger_gateway_url:
            raise ValueError("LEDGER_GATEWAY_URL is required when LEDGER_MODE=http")
        return HttpLedgerAnchor(
            gateway_url=settings.ledger_gateway_url,
            api_key=settings.ledger_api_key,
            timeout=settings.ledger_timeout_seconds,
        )
    raise ValueError(f"Unknown LEDGER_MODE '{settings.ledger_mode}'. Use simulated/http.")


async def anchor_package(
    session: AsyncSession,
    package_id: int,
    ledger: LedgerAnchor,
    force: bool = False
) -> MRVPackage:
    """
    Anchor a package's top-level hash and store the returned transaction id.

    Raises:
        NotFoundError: unknown package
        InputError: package already anchored and ``force`` not set
        LedgerError: anchor submission failed
    """
    package = await session.get(MRVPackage, package_id)
    if not package:
        raise NotFoundError(f"Package {package_id} not found", context={"package_id": package_id})
    if package.ledger_tx_id and not force:
        raise InputError(
            f"Package {package_id} is already anchored",
            context={"package_id": package_id, "ledger_tx_id": package.ledger_tx_id}
        )

    receipt = await ledger.anchor(package.id, package.checksum)
    package.ledger_tx_id = receipt.tx_id
    await session.commit()
    await session.refresh(package)

    audit = AuditLog(
        payload_hash=hash_payload({"package_id": package.id, "checksum": package.checksum,
                                   "ledger_tx_id": receipt.tx_id}),
        action=AuditAction.PACKAGE_ANCHORED.value,
        entity_type="mrv_package",
        entity_id=package.id,
        extra_data=json.dumps({"ledger_tx_id": receipt.tx_id})
    )
    session.add(audit)
    await session.commit()

    logger.info("Anchored package %s as %s", package.id, receipt.tx_id)
    return package
