"""Tamper-evident audit trail - a local SHA-256 hash chain of decisions and alerts.

Each block links to its predecessor:

    data_hash  = sha256(canonical_json(record body))
    block_hash = sha256(data_hash + previous_hash)

The first block's previous_hash is the "0" sentinel. This is a single-writer
hash chain, not a replicated ledger.
"""

import hashlib
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Mapping, Optional, Protocol

from kyc_gateway.domain.exceptions import LedgerWriteError
from kyc_gateway.domain.models import ChainIntegrityReport, LedgerRecord
from kyc_gateway.domain.serialization import canonical_json

GENESIS_HASH = "0"
VERIFICATION_RECORD = "VERIFICATION"
FRAUD_ALERT_RECORD = "FRAUD_ALERT"


class LedgerStore(Protocol):
    """Append-only block storage; only an unfinished tail may be discarded"""

    def last(self) -> Optional[LedgerRecord]:
        ...

    def add(self, record: LedgerRecord) -> None:
        ...

    def records(self) -> List[LedgerRecord]:
        ...

    def discard_from(self, index: int) -> None:
        """Drop every block at or after index"""
        ...


class InMemoryLedgerStore:
    def __init__(self) -> None:
        self._records: List[LedgerRecord] = []

    def last(self) -> Optional[LedgerRecord]:
        return self._records[-1] if self._records else None

    def add(self, record: LedgerRecord) -> None:
        self._records.append(record)

    def records(self) -> List[LedgerRecord]:
        return list(self._records)

    def discard_from(self, index: int) -> None:
        self._records = [r for r in self._records if r.index < index]


def calculate_hash(data: str) -> str:
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def record_body(user_id: str, verification_id: str, kind: str, timestamp: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "user_id": user_id,
        "verification_id": verification_id,
        "kind": kind,
        "timestamp": timestamp,
        "payload": payload,
    }


def compute_data_hash(record: LedgerRecord) -> str:
    body = record_body(record.user_id, record.verification_id, record.kind, record.timestamp, record.payload)
    return calculate_hash(canonical_json(body))


def verify_chain_integrity(records: List[LedgerRecord]) -> ChainIntegrityReport:
    """
    Walk the chain and report every broken block; never raises.

    A block is corrupted when its previous_hash does not match the prior
    block's block_hash, when sha256(data_hash + previous_hash) differs from
    its stored block_hash, or when its payload no longer hashes to data_hash.
    """
    corrupted: List[int] = []
    expected_previous = GENESIS_HASH

    for position, record in enumerate(records):
        broken = False
        try:
            if record.previous_hash != expected_previous:
                broken = True
            if calculate_hash(record.data_hash + record.previous_hash) != record.block_hash:
                broken = True
            if compute_data_hash(record) != record.data_hash:
                broken = True
        except (TypeError, ValueError, AttributeError):
            broken = True

        if broken:
            corrupted.append(position)
        expected_previous = record.block_hash

    return ChainIntegrityReport(
        is_valid=not corrupted,
        corrupted_indices=tuple(corrupted),
        corrupted_record_ids=tuple(records[i].record_id for i in corrupted),
        length=len(records),
    )


class HashChainLedger:
    """Appends hash-linked records to a LedgerStore"""

    def __init__(self, store: Optional[LedgerStore] = None):
        self.store = store if store is not None else InMemoryLedgerStore()
        self._lock = threading.RLock()

    @contextmanager
    def atomic(self) -> Iterator["HashChainLedger"]:
        """
        Group appends so they land together or not at all.

        If the block raises, every record appended inside it is discarded
        and the exception propagates. Other writers wait until the group ends.
        """
        with self._lock:
            last = self.store.last()
            start = last.index + 1 if last else 0
            try:
                yield self
            except BaseException:
                self.store.discard_from(start)
                raise

    def append(
        self,
        user_id: str,
        verification_id: str,
        kind: str,
        payload: Mapping[str, Any],
        timestamp: Optional[datetime] = None,
    ) -> LedgerRecord:
        """
        Link and store a new block.

        Raises:
            LedgerWriteError: the backing store rejected the write
        """
        stamp = (timestamp or datetime.now(timezone.utc)).isoformat()

        with self._lock:
            try:
                last = self.store.last()
                previous_hash = last.block_hash if last else GENESIS_HASH
                index = last.index + 1 if last else 0

                data_hash = calculate_hash(
                    canonical_json(record_body(user_id, verification_id, kind, stamp, payload))
                )
                block_hash = calculate_hash(data_hash + previous_hash)
                record = LedgerRecord(
                    index=index,
                    record_id=f"BLK-{block_hash[:16]}",
                    user_id=user_id,
                    verification_id=verification_id,
                    kind=kind,
                    timestamp=stamp,
                    payload=dict(payload),
                    data_hash=data_hash,
                    previous_hash=previous_hash,
                    block_hash=block_hash,
                )
                self.store.add(record)
            except LedgerWriteError:
                raise
            except Exception as e:
                raise LedgerWriteError(f"Failed to append {kind} record for {verification_id}: {e}") from e

        return record

    def records(self) -> List[LedgerRecord]:
        return self.store.records()

    def history(self, user_id: str) -> List[LedgerRecord]:
        return [record for record in self.store.records() if record.user_id == user_id]

    def verify_chain_integrity(self) -> ChainIntegrityReport:
        return verify_chain_integrity(self.store.records())
