"""
Participant registry: resolves a durable participant from identity claims and
owns every score mutation.

Identity keys are namespaced so the two kinds of platform ids never collide:
    account:<user_id>                          viewer shared their identity
    opaque:<channel_id>:<opaque_user_id>       pseudonymous, per channel
A viewer who shares their identity mid-session keeps their record: the
pseudonymous row is re-keyed to the account key if no account row exists yet.
"""
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from leaderboard_server.config import FALLBACK_NAME_PREFIX, MAX_SCORE
from leaderboard_server.errors import NotFoundError, UpstreamLookupFailure, ValidationError
from leaderboard_server.identity import IdentityClaims
from leaderboard_server.models import Participant
from leaderboard_server.profiles import fetch_display_name
from leaderboard_server.token_cache import TokenCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParticipantRecord:
    """Immutable snapshot of a participant row."""

    id: str
    name: str
    score: int
    external_identity: str

    @classmethod
    def from_row(cls, row: Participant) -> "ParticipantRecord":
        return cls(id=row.id, name=row.name, score=row.score, external_identity=row.external_identity)

    def to_public(self) -> dict:
        return {"id": self.id, "name": self.name, "score": self.score}


def account_key(user_id: str) -> str:
    return f"account:{user_id}"


def opaque_key(opaque_user_id: str, channel_id: str | None = None) -> str:
    if channel_id:
        return f"opaque:{channel_id}:{opaque_user_id}"
    return f"opaque:{opaque_user_id}"


def platform_identity(claims: IdentityClaims) -> str:
    """The raw platform id the key is built from: account id, else pseudonymous id."""
    if claims.user_id:
        return claims.user_id
    if claims.opaque_user_id:
        return claims.opaque_user_id
    raise ValidationError("no identity")


def identity_key(claims: IdentityClaims) -> str:
    """Account id wins over the pseudonymous id. Raises ValidationError('no identity')."""
    if claims.user_id:
        return account_key(claims.user_id)
    if claims.opaque_user_id:
        return opaque_key(claims.opaque_user_id, claims.channel_id)
    raise ValidationError("no identity")


def synthesized_name(platform_id: str) -> str:
    return f"{FALLBACK_NAME_PREFIX}{platform_id[-6:]}"


def effective_name(profile_name: str | None, fallback_name: Any, platform_id: str) -> str:
    """Profile display name, else trimmed caller name, else Viewer-<last 6 of the platform id>."""
    if profile_name:
        return profile_name
    if isinstance(fallback_name, str) and fallback_name.strip():
        return fallback_name.strip()
    return synthesized_name(platform_id)


def normalize_increment(amount: Any) -> int:
    """Positive integers pass through; anything else (None, 0, negatives, 1.5, True, "3") is 1."""
    if isinstance(amount, bool):
        return 1
    if isinstance(amount, int) and amount > 0:
        return amount
    if isinstance(amount, float) and amount.is_integer() and amount > 0:
        return int(amount)
    return 1


class ParticipantRegistry:
    def __init__(
        self,
        session_factory: sessionmaker,
        token_cache: TokenCache,
        *,
        lookup: Callable[[str, str], str | None] = fetch_display_name,
        max_score: int = MAX_SCORE,
    ):
        self._session_factory = session_factory
        self._token_cache = token_cache
        self._lookup = lookup
        self._max_score = max_score
        # Guards find-or-create and every score mutation; the unique constraint
        # on external_identity backs it up
        self._lock = threading.Lock()

    def _session(self) -> Session:
        return self._session_factory()

    def _resolve_profile_name(self, user_id: str) -> str | None:
        # Token exchange failure (UpstreamAuthError) is fatal and propagates
        access_token = self._token_cache.get_token()
        try:
            return self._lookup(user_id, access_token)
        except UpstreamLookupFailure as e:
            logger.warning("Profile lookup degraded to fallback name: %s", e.description)
            return None

    def resolve_player(self, claims: IdentityClaims, fallback_name: Any = None) -> ParticipantRecord:
        """
        Find or create the participant for these claims, refreshing the display name.
        Raises ValidationError if the claims carry no identity, UpstreamAuthError if
        an app token is needed and cannot be obtained.
        """
        key = identity_key(claims)
        profile_name = self._resolve_profile_name(claims.user_id) if claims.user_id else None
        name = effective_name(profile_name, fallback_name, platform_identity(claims))

        with self._lock:
            db = self._session()
            try:
                row = self._find_by_identity(db, key)
                if row is None and claims.user_id and claims.opaque_user_id:
                    row = self._rekey(db, opaque_key(claims.opaque_user_id, claims.channel_id), key)
                if row is not None:
                    if name and name != row.name:
                        row.name = name
                        db.commit()
                    return ParticipantRecord.from_row(row)
                return self._create(db, key, name)
            finally:
                db.close()

    def _find_by_identity(self, db: Session, key: str) -> Participant | None:
        return db.execute(select(Participant).where(Participant.external_identity == key)).scalar_one_or_none()

    def _rekey(self, db: Session, old_key: str, new_key: str) -> Participant | None:
        row = self._find_by_identity(db, old_key)
        if row is None:
            return None
        row.external_identity = new_key
        db.commit()
        logger.info("Linked participant %s to shared account identity", row.id)
        return row

    def _create(self, db: Session, key: str, name: str) -> ParticipantRecord:
        row = Participant(id=str(uuid.uuid4()), external_identity=key, name=name, score=0)
        db.add(row)
        try:
            db.commit()
        except IntegrityError:
            # Another writer on the same database won the insert; use its row
            db.rollback()
            existing = self._find_by_identity(db, key)
            if existing is None:
                raise
            return ParticipantRecord.from_row(existing)
        logger.info("Created participant %s", row.id)
        return ParticipantRecord.from_row(row)

    def _get_row(self, db: Session, participant_id: Any) -> Participant:
        if not isinstance(participant_id, str) or not participant_id:
            raise NotFoundError()
        row = db.execute(select(Participant).where(Participant.id == participant_id)).scalar_one_or_none()
        if row is None:
            raise NotFoundError()
        return row

    def get(self, participant_id: str) -> ParticipantRecord:
        with self._lock:
            db = self._session()
            try:
                return ParticipantRecord.from_row(self._get_row(db, participant_id))
            finally:
                db.close()

    def increment_score(self, participant_id: str, amount: Any = None) -> ParticipantRecord:
        """score += amount (normalized to a positive int), saturating at max_score."""
        inc = normalize_increment(amount)
        with self._lock:
            db = self._session()
            try:
                row = self._get_row(db, participant_id)
                row.score = min(row.score + inc, self._max_score)
                db.commit()
                return ParticipantRecord.from_row(row)
            finally:
                db.close()

    def reset_score(self, participant_id: str) -> ParticipantRecord:
        with self._lock:
            db = self._session()
            try:
                row = self._get_row(db, participant_id)
                row.score = 0
                db.commit()
                return ParticipantRecord.from_row(row)
            finally:
                db.close()

    def snapshot(self) -> list[ParticipantRecord]:
        """All participants, highest score first, ties in insertion order."""
        with self._lock:
            db = self._session()
            try:
                rows = db.execute(
                    select(Participant).order_by(Participant.score.desc(), Participant.seq.asc())
                ).scalars()
                return [ParticipantRecord.from_row(r) for r in rows]
            finally:
                db.close()
