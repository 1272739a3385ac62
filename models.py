from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class VerificationRequest:
    code: str
    address: str
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class IdentityCredential:
    access_token: str = field(repr=False)
    refresh_token: Optional[str] = field(default=None, repr=False)
    token_type: str = "Bearer"
    scope: str = ""
    expires_in: Optional[int] = None

    @classmethod
    def from_payload(cls, data: dict):
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            token_type=data.get("token_type") or "Bearer",
            scope=data.get("scope") or "",
            expires_in=data.get("expires_in"),
        )


@dataclass(frozen=True)
class Profile:
    id: str
    username: str
    discriminator: str = "0"
    global_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None
    mfa_enabled: bool = False
    locale: Optional[str] = None
    verified: bool = False

    @property
    def tag(self) -> str:
        # Migrated accounts report discriminator "0" and have no #tag.
        if self.discriminator and self.discriminator != "0":
            return f"{self.username}#{self.discriminator}"
        return self.username

    @classmethod
    def from_payload(cls, data: dict):
        return cls(
            id=str(data["id"]),
            username=data.get("username") or "Unknown",
            discriminator=str(data.get("discriminator") or "0"),
            global_name=data.get("global_name"),
            email=data.get("email"),
            phone=data.get("phone"),
            avatar=data.get("avatar"),
            mfa_enabled=bool(data.get("mfa_enabled", False)),
            locale=data.get("locale"),
            verified=bool(data.get("verified", False)),
        )


@dataclass(frozen=True)
class Connection:
    type: str
    name: str


@dataclass(frozen=True)
class GeoRecord:
    address: str
    country: Optional[str] = None
    city: Optional[str] = None
    isp: Optional[str] = None
    org: Optional[str] = None
    is_proxy: bool = False
    is_hosting: bool = False
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def map_link(self) -> Optional[str]:
        if self.latitude is None or self.longitude is None:
            return None
        return f"https://www.google.com/maps?q={self.latitude},{self.longitude}"


@dataclass(frozen=True)
class NetworkInfo:
    address: str
    user_agent: Optional[str] = None
    geo: Optional[GeoRecord] = None


@dataclass(frozen=True)
class VerificationRecord:
    """Everything gathered about one user during a single callback."""

    identity: Profile
    network: NetworkInfo
    connections: tuple = ()
    credential: Optional[IdentityCredential] = field(default=None, repr=False)
    verified_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


ASSIGNED = "assigned"
ALREADY_VERIFIED = "already_verified"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass(frozen=True)
class GuildOutcome:
    guild_id: int
    guild_name: str
    status: str
    detail: str = ""


@dataclass
class ProvisionReport:
    identity_id: str
    outcomes: list = field(default_factory=list)

    def add(self, guild, status: str, detail: str = ""):
        self.outcomes.append(GuildOutcome(guild.id, guild.name, status, detail))

    def _with(self, *statuses):
        return [o for o in self.outcomes if o.status in statuses]

    @property
    def assigned(self):
        return self._with(ASSIGNED, ALREADY_VERIFIED)

    @property
    def skipped(self):
        return self._with(SKIPPED)

    @property
    def failed(self):
        return self._with(FAILED)


@dataclass(frozen=True)
class VerificationResult:
    record: VerificationRecord
    report: ProvisionReport
