# ------------------------------------------------------------------------
# File: store.py
# Location: signlink/core/store.py
# Description:
#     Durable storage for sign requests and their audit events. Every
#     public method is one database transaction: a state change and the
#     event describing it are committed together or not at all.
# ------------------------------------------------------------------------

from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from signlink.core.contract import ContractDocument, Signer, normalize
from signlink.core.errors import DuplicateToken, NotFound
from signlink.core.logging_config import configure_logging
from signlink.core.timeutil import ensure_utc, utcnow
from signlink.db.models import SignEvent, SignEventType, SignRequest, SignRequestStatus

logger = configure_logging("signlink.store", "signlink.log")


@dataclass(frozen=True)
class SignRequestRecord:
    token: str
    contract: ContractDocument
    status: SignRequestStatus
    sign_count: int
    created_at: datetime
    updated_at: datetime
    expires_at: datetime
    last_signed_at: Optional[datetime] = None
    signed_by_ip: str = ""
    signed_user_agent: str = ""

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass(frozen=True)
class SignEventRecord:
    id: int
    token: str
    event_type: SignEventType
    payload: dict
    ip: str
    user_agent: str
    created_at: datetime


def _to_record(row: SignRequest) -> SignRequestRecord:
    # Stored snapshots go back through normalize so a damaged row still loads.
    return SignRequestRecord(
        token=row.token,
        contract=normalize(row.contract_json),
        status=row.status,
        sign_count=row.sign_count or 0,
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
        expires_at=ensure_utc(row.expires_at),
        last_signed_at=ensure_utc(row.last_signed_at),
        signed_by_ip=row.signed_by_ip or "",
        signed_user_agent=row.signed_user_agent or "",
    )


def _to_event_record(row: SignEvent) -> SignEventRecord:
    return SignEventRecord(
        id=row.id,
        token=row.token,
        event_type=row.event_type,
        payload=row.event_payload or {},
        ip=row.ip or "",
        user_agent=row.user_agent or "",
        created_at=ensure_utc(row.created_at),
    )


class SignRequestStore:
    """Transactional access to the sign_requests and sign_events tables."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    @contextmanager
    def _transaction(self):
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def _load(session, token: str) -> SignRequest:
        row = session.get(SignRequest, token)
        if row is None:
            raise NotFound()
        return row

    @staticmethod
    def _add_event(session, token, event_type, payload, ip, user_agent, at):
        session.add(SignEvent(
            token=token,
            event_type=event_type,
            event_payload=payload or {},
            ip=ip or "",
            user_agent=user_agent or "",
            created_at=at,
        ))

    def create(
        self,
        token: str,
        contract: ContractDocument,
        created_at: datetime,
        expires_at: datetime,
        event_payload: dict = None,
        ip: str = "",
        user_agent: str = "",
    ) -> SignRequestRecord:
        """Insert a PENDING request together with its LINK_CREATED event."""
        try:
            with self._transaction() as session:
                if session.get(SignRequest, token) is not None:
                    raise DuplicateToken()

                row = SignRequest(
                    token=token,
                    contract_json=contract.to_dict(),
                    status=SignRequestStatus.PENDING,
                    sign_count=0,
                    created_at=created_at,
                    updated_at=created_at,
                    expires_at=expires_at,
                )
                session.add(row)
                session.flush()
                self._add_event(
                    session, token, SignEventType.LINK_CREATED, event_payload, ip, user_agent, created_at
                )
                record = _to_record(row)
        except IntegrityError as exc:
            raise DuplicateToken() from exc

        logger.info(f"Created sign request {token[:8]}... expiring {expires_at.isoformat()}")
        return record

    def get(self, token: str) -> SignRequestRecord:
        with self._transaction() as session:
            return _to_record(self._load(session, token))

    @staticmethod
    def _load_for_update(session, token: str) -> SignRequest:
        row = (
            session.query(SignRequest)
            .filter(SignRequest.token == token)
            .with_for_update()
            .one_or_none()
        )
        if row is None:
            raise NotFound()
        return row

    def record_delivery(
        self,
        token: str,
        sent_at: datetime,
        remote_changes: dict,
        client_email: str = "",
        client_phone: str = "",
        event_payload: dict = None,
        ip: str = "",
        user_agent: str = "",
    ) -> SignRequestRecord:
        """
        Apply a link delivery to the stored snapshot and log LINK_SENT.

        Only the remoteSigning fields in ``remote_changes`` and any non-empty
        client contact are written; the rest of the snapshot is re-read
        inside the transaction, so a signature committed while the message
        was in flight is kept.
        """
        with self._transaction() as session:
            row = self._load_for_update(session, token)
            contract = normalize(row.contract_json)
            if client_email:
                contract = replace(contract, client_email=client_email)
            if client_phone:
                contract = replace(contract, client_phone=client_phone)
            contract = contract.with_remote_signing(**remote_changes)

            row.contract_json = contract.to_dict()
            row.updated_at = sent_at
            self._add_event(session, token, SignEventType.LINK_SENT, event_payload, ip, user_agent, sent_at)
            session.flush()
            return _to_record(row)

    def record_signature(
        self,
        token: str,
        client: Signer,
        signed_at: datetime,
        ip: str = "",
        user_agent: str = "",
        event_payload: dict = None,
    ) -> SignRequestRecord:
        """Set the client signer, mark SIGNED, bump sign_count and log CLIENT_SIGNED in one commit."""
        with self._transaction() as session:
            row = self._load_for_update(session, token)
            contract = normalize(row.contract_json).with_client_signer(client)

            row.contract_json = contract.to_dict()
            row.status = SignRequestStatus.SIGNED
            row.sign_count = SignRequest.sign_count + 1
            row.last_signed_at = signed_at
            row.signed_by_ip = ip or ""
            row.signed_user_agent = user_agent or ""
            row.updated_at = signed_at
            session.flush()
            session.refresh(row)

            payload = dict(event_payload or {})
            payload["signCount"] = row.sign_count
            self._add_event(
                session, token, SignEventType.CLIENT_SIGNED, payload, ip, user_agent, signed_at
            )
            session.flush()
            return _to_record(row)

    def append_event(
        self,
        token: str,
        event_type: SignEventType,
        payload: dict,
        ip: str = "",
        user_agent: str = "",
        at: datetime = None,
    ) -> None:
        with self._transaction() as session:
            self._load(session, token)
            self._add_event(session, token, event_type, payload, ip, user_agent, at or utcnow())

    def list_events(self, token: str) -> List[SignEventRecord]:
        with self._transaction() as session:
            rows = (
                session.query(SignEvent)
                .filter(SignEvent.token == token)
                .order_by(SignEvent.created_at, SignEvent.id)
                .all()
            )
            return [_to_event_record(row) for row in rows]

    def count_expired_before(self, cutoff: datetime) -> Tuple[int, int]:
        with self._transaction() as session:
            expired_tokens = session.query(SignRequest.token).filter(SignRequest.expires_at < cutoff)
            requests = expired_tokens.count()
            events = (
                session.query(SignEvent)
                .filter(SignEvent.token.in_(expired_tokens.scalar_subquery()))
                .count()
            )
            return requests, events

    def delete_expired_before(self, cutoff: datetime) -> Tuple[int, int]:
        """Delete requests with expires_at < cutoff, events first. Returns (requests, events)."""
        with self._transaction() as session:
            expired_tokens = (
                session.query(SignRequest.token)
                .filter(SignRequest.expires_at < cutoff)
                .scalar_subquery()
            )
            deleted_events = (
                session.query(SignEvent)
                .filter(SignEvent.token.in_(expired_tokens))
                .delete(synchronize_session=False)
            )
            deleted_requests = (
                session.query(SignRequest)
                .filter(SignRequest.expires_at < cutoff)
                .delete(synchronize_session=False)
            )
        return deleted_requests, deleted_events
