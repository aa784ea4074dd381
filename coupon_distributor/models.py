from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional


def utcnow():
    return datetime.now(timezone.utc)


def to_millis(value):
    if value is None:
        return None
    return int(round(value.timestamp() * 1000))


def from_millis(value):
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def isoformat(value):
    if value is None:
        return None
    return value.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


@dataclass(frozen=True)
class Identity:
    ip: str
    session_id: Optional[str] = None
    is_new_session: bool = False


@dataclass
class ClaimRecord:
    ip: str
    session_id: Optional[str]
    claimed_at: datetime

    def to_dict(self):
        return {
            'ip': self.ip,
            'sessionId': self.session_id,
            'claimedAt': isoformat(self.claimed_at),
        }


@dataclass
class Coupon:
    code: str
    description: str
    expiry_date: Optional[datetime]
    is_active: bool = True
    is_used: bool = False
    last_claim_at: Optional[datetime] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    claimed_by: List[ClaimRecord] = field(default_factory=list)

    @classmethod
    def from_row(cls, row, claims=None):
        return cls(
            id=row['id'],
            code=row['code'],
            description=row['description'],
            is_active=bool(row['is_active']),
            is_used=bool(row['is_used']),
            expiry_date=from_millis(row['expiry_date']),
            last_claim_at=from_millis(row['last_claim_at']),
            created_at=from_millis(row['created_at']),
            updated_at=from_millis(row['updated_at']),
            claimed_by=list(claims or []),
        )

    def to_public(self):
        return {
            'code': self.code,
            'description': self.description,
            'expiryDate': isoformat(self.expiry_date),
        }

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'description': self.description,
            'isActive': self.is_active,
            'isUsed': self.is_used,
            'expiryDate': isoformat(self.expiry_date),
            'lastClaimAt': isoformat(self.last_claim_at),
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
            'claimedBy': [claim.to_dict() for claim in self.claimed_by],
        }

    def to_history(self):
        return {
            'id': self.id,
            'code': self.code,
            'createdAt': isoformat(self.created_at),
            'claimedBy': [claim.to_dict() for claim in self.claimed_by],
        }
