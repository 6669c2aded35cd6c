# SPARQL Endpoint Access Layer
# File: models.py
# Version: v3

"""Domain models used by the SPARQL endpoint access layer."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import ClassifiedError

TERM_TYPES = ("uri", "literal", "bnode")


class AuthKind(str, Enum):
    """How requests to an endpoint are authenticated."""

    NONE = "none"
    BASIC = "basic"
    BEARER = "bearer"
    API_KEY = "apiKey"

    @classmethod
    def parse(cls, value: Optional[str]) -> "AuthKind":
        """Lenient lookup: accepts ``apikey``/``api_key`` and any casing."""
        if not value:
            return cls.NONE
        normalized = value.strip().lower().replace("_", "").replace("-", "")
        for kind in cls:
            if kind.value.lower() == normalized:
                return kind
        raise ValueError(f"Unknown auth type: {value!r}")


class EndpointStatus(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass
class Credentials:
    """Secrets for one endpoint. Never written to durable storage."""

    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None
    api_key: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credentials":
        return cls(
            username=data.get("username"),
            password=data.get("password"),
            token=data.get("token"),
            api_key=data.get("api_key") or data.get("apiKey"),
        )

    def __repr__(self) -> str:
        # Keep secrets out of logs and tracebacks.
        present = ", ".join(sorted(self.to_dict()))
        return f"Credentials(<{present or 'empty'}>)"


@dataclass
class AuthConfig:
    """Auth configuration of an endpoint.

    ``credentials`` may be left empty; the executor then resolves them at call
    time from the session credential store, keyed by endpoint id.
    """

    kind: AuthKind = AuthKind.NONE
    header_name: Optional[str] = None
    credentials: Optional[Credentials] = None


@dataclass
class Endpoint:
    """A SPARQL endpoint as configured by the user."""

    id: str
    url: str
    name: Optional[str] = None
    auth: AuthConfig = field(default_factory=AuthConfig)
    language_priorities: List[str] = field(default_factory=list)

    # Mutated only by code paths that query the endpoint (last write wins).
    status: EndpointStatus = EndpointStatus.IDLE


@dataclass(frozen=True)
class QueryOptions:
    """Per-call execution options. Durations are in seconds."""

    retries: int = 3
    retry_delay: float = 1.0
    timeout: float = 60.0

    def __post_init__(self) -> None:
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.retry_delay < 0:
            raise ValueError("retry_delay must be >= 0")
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")


@dataclass(frozen=True)
class RdfTerm:
    """One RDF term inside a result binding."""

    type: str
    value: str
    lang: Optional[str] = None
    datatype: Optional[str] = None

    def __post_init__(self) -> None:
        if self.type not in TERM_TYPES:
            raise ValueError(f"Unknown RDF term type: {self.type!r}")
        if self.type != "literal" and (self.lang or self.datatype):
            raise ValueError("lang/datatype are only allowed on literals")
        if self.lang and self.datatype:
            raise ValueError("lang and datatype are mutually exclusive")

    def to_dict(self) -> Dict[str, str]:
        out = {"type": self.type, "value": self.value}
        if self.lang:
            out["xml:lang"] = self.lang
        if self.datatype:
            out["datatype"] = self.datatype
        return out


@dataclass
class SparqlResult:
    """Parsed SELECT or ASK result.

    For ASK results ``boolean`` is set and ``bindings`` is empty.
    """

    vars: List[str] = field(default_factory=list)
    bindings: List[Dict[str, RdfTerm]] = field(default_factory=list)
    boolean: Optional[bool] = None

    @property
    def is_ask(self) -> bool:
        return self.boolean is not None

    def values(self, var: str) -> List[str]:
        """Values bound to ``var`` across all rows, skipping unbound rows."""
        return [row[var].value for row in self.bindings if var in row]

    def first(self, var: str) -> Optional[str]:
        for row in self.bindings:
            if var in row:
                return row[var].value
        return None

    def to_dict(self) -> Dict[str, Any]:
        if self.is_ask:
            return {"head": {}, "boolean": self.boolean}
        return {
            "head": {"vars": list(self.vars)},
            "results": {
                "bindings": [
                    {name: term.to_dict() for name, term in row.items()}
                    for row in self.bindings
                ]
            },
        }


@dataclass
class LanguageCount:
    lang: str
    count: int


@dataclass
class GraphDetection:
    """Outcome of the named-graph probe. ``None`` means unknown."""

    supports_named_graphs: Optional[bool]
    graph_count: Optional[int] = None
    graph_count_exact: bool = False


@dataclass
class SkosGraphResult:
    skos_graph_count: Optional[int]

    # URIs only when the count stays within the probe's threshold.
    skos_graph_uris: Optional[List[str]]


@dataclass
class SchemeDetection:
    scheme_uris: List[str]
    scheme_count: int
    schemes_limited: bool


@dataclass
class RelationshipSupport:
    """Which SKOS hierarchy predicates occur anywhere in the dataset."""

    has_in_scheme: bool = False
    has_top_concept_of: bool = False
    has_has_top_concept: bool = False
    has_broader: bool = False
    has_narrower: bool = False
    has_broader_transitive: bool = False
    has_narrower_transitive: bool = False


@dataclass
class EndpointAnalysis:
    """Capability snapshot of an endpoint.

    ``None`` fields mean "could not be determined", distinct from zero/False.
    """

    supports_named_graphs: Optional[bool] = None
    graph_count: Optional[int] = None
    graph_count_exact: bool = False
    skos_graph_count: Optional[int] = None
    skos_graph_uris: Optional[List[str]] = None
    has_duplicates: bool = False
    languages: List[LanguageCount] = field(default_factory=list)

    total_concepts: Optional[int] = None
    relationships: Optional[RelationshipSupport] = None
    scheme_uris: List[str] = field(default_factory=list)
    scheme_count: int = 0
    schemes_limited: bool = False
    label_predicates: Dict[str, List[str]] = field(default_factory=dict)
    analyzed_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ConnectionTestResult:
    success: bool

    # Wall-clock seconds for the single probe query.
    response_time: float
    error: Optional[ClassifiedError] = None


@dataclass(frozen=True)
class PrefixEntry:
    """A URI split into a namespace prefix and a local name.

    ``prefix`` is empty when the namespace could not be resolved.
    """

    prefix: str
    local_name: str


class TrustLevel(str, Enum):
    TRUSTED = "trusted"
    UNKNOWN = "unknown"
    WARNING = "warning"


@dataclass
class EndpointSecurityCheck:
    is_https: bool
    is_localhost: bool
    warning: Optional[str] = None


@dataclass
class EndpointTrust:
    level: TrustLevel
    reasons: List[str] = field(default_factory=list)
