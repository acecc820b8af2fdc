# src/contextgw/config/schema.py

"""Configuration schema: the single source of truth for gateway settings.

Two views of the same shape live here:

- ``Settings`` is the Pydantic wall every merged candidate passes through.
  It collects *all* violations in one pass.
- ``FIELDS`` is an explicit descriptor table (name, kind, optionality,
  description) that the environment loader, the command-line parser and the
  interactive wizard iterate over, so none of them hard-codes field names or
  inspects Pydantic internals.

``validate`` turns a candidate mapping into an immutable ``FrozenConfig``.
"""

from __future__ import annotations

from contextlib import suppress
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Annotated, Any

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from contextgw.errors import ConfigValidationError, ValidationIssue

from .utils import env_var_name, field_spec_hint, flag_name

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

# --- Enumerations ---


class EncryptionMode(str, Enum):
    """Encryption requirement for incoming gateway messages."""

    OPTIONAL = "optional"
    REQUIRED = "required"
    DISABLED = "disabled"


def _normalize_encryption_mode(v: Any) -> Any:
    """Accept enum values or common string forms for encryption mode.

    Supports enum instance, exact value ("required") or enum name ("REQUIRED").
    """
    if isinstance(v, EncryptionMode):
        return v
    if isinstance(v, str):
        s = v.strip()
        with suppress(ValueError):
            return EncryptionMode(s.lower())
        with suppress(KeyError):
            return EncryptionMode[s.upper()]
    return v  # Let Pydantic raise with a precise error message


# --- Field types shared by the model and the descriptor table ---

ServerCommand = Annotated[list[str], Field(min_length=1)]
PrivateKey = Annotated[str, Field(min_length=64)]
RelayList = Annotated[list[str], Field(min_length=1)]
PublicKeyList = list[str]
Mode = Annotated[EncryptionMode, BeforeValidator(_normalize_encryption_mode)]

DESCRIPTIONS: dict[str, str] = {
    "server": (
        "The command to start your MCP server (e.g., 'npx -y @mcp/server-echo')."
    ),
    "privateKey": "Your unique private key in HEX for signing events.",
    "relays": (
        "A list of relay URLs to connect to (e.g., 'wss://relay.damus.io')."
    ),
    "public": "If true, the server will be announced publicly.",
    "serverInfo": "Optional server metadata (name, picture, website).",
    "serverInfo.name": "The name of the server shown in its announcement.",
    "serverInfo.picture": "The URL of the server's picture.",
    "serverInfo.website": "The URL of the server's website.",
    "allowedPublicKeys": (
        "A comma-separated list of public keys allowed to connect."
    ),
    "encryptionMode": (
        "Sets the encryption requirement for incoming messages "
        "(optional, required, disabled)."
    ),
}

# --- Schema (Pydantic wall) ---


class ServerInfo(BaseModel):
    """Optional server metadata announced alongside the gateway."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = Field(default=None, description=DESCRIPTIONS["serverInfo.name"])
    picture: str | None = Field(
        default=None, description=DESCRIPTIONS["serverInfo.picture"]
    )
    website: str | None = Field(
        default=None, description=DESCRIPTIONS["serverInfo.website"]
    )

    def is_empty(self) -> bool:
        return self.name is None and self.picture is None and self.website is None


class Settings(BaseModel):
    """Pydantic schema for gateway configuration validation and defaults.

    Keys are camelCase aliases so that file content, error paths and the
    wizard's output all speak the same names; Python attribute names are
    accepted too.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    server: ServerCommand = Field(description=DESCRIPTIONS["server"])
    private_key: PrivateKey = Field(
        alias="privateKey", description=DESCRIPTIONS["privateKey"]
    )
    relays: RelayList = Field(description=DESCRIPTIONS["relays"])
    public: bool = Field(default=False, description=DESCRIPTIONS["public"])
    server_info: ServerInfo | None = Field(
        default=None, alias="serverInfo", description=DESCRIPTIONS["serverInfo"]
    )
    allowed_public_keys: PublicKeyList | None = Field(
        default=None,
        alias="allowedPublicKeys",
        description=DESCRIPTIONS["allowedPublicKeys"],
    )
    encryption_mode: Mode = Field(
        default=EncryptionMode.OPTIONAL,
        alias="encryptionMode",
        description=DESCRIPTIONS["encryptionMode"],
    )

    @field_validator("private_key", mode="before")
    @classmethod
    def normalize_private_key(cls, v: Any) -> Any:
        """Trim surrounding whitespace (e.g. a trailing newline from a .env file)."""
        if isinstance(v, str):
            return v.strip()
        return v

    @model_validator(mode="after")
    def drop_empty_server_info(self) -> Settings:
        """Keep serverInfo only when at least one sub-field is set."""
        if self.server_info is not None and self.server_info.is_empty():
            self.server_info = None
        return self


# --- Field descriptor table ---


class FieldKind(str, Enum):
    """How a field is read from flat sources and prompted for."""

    COMMAND = "command"  # argv-like sequence; whitespace separated when flat
    STRING = "string"
    STRING_LIST = "string_list"  # comma separated when flat
    BOOLEAN = "boolean"
    CHOICE = "choice"
    RECORD = "record"  # nested mapping of child fields


@dataclass(frozen=True)
class FieldSpec:
    """Descriptor for one configuration field."""

    name: str
    attr: str
    kind: FieldKind
    annotation: Any
    optional: bool
    parent: str | None = None
    children: tuple[FieldSpec, ...] = ()
    choices: tuple[str, ...] = ()

    @property
    def path(self) -> tuple[str, ...]:
        return (self.parent, self.name) if self.parent else (self.name,)

    @property
    def key(self) -> str:
        """Dotted camelCase key, e.g. ``serverInfo.name``."""
        return ".".join(self.path)

    @property
    def description(self) -> str:
        return DESCRIPTIONS.get(self.key, f"Enter value for {self.key}")

    @property
    def env_var(self) -> str:
        return env_var_name(*self.path)

    @property
    def flag(self) -> str:
        return flag_name(*self.path)

    @property
    def is_boolean(self) -> bool:
        return self.kind is FieldKind.BOOLEAN

    @property
    def is_sequence(self) -> bool:
        return self.kind in (FieldKind.COMMAND, FieldKind.STRING_LIST)

    @property
    def is_record(self) -> bool:
        return self.kind is FieldKind.RECORD

    def check(self, value: Any) -> Any:
        """Validate a single candidate value against this field's constraints.

        Returns:
            The normalized, plain (YAML/JSON friendly) value.

        Raises:
            ConfigValidationError: With every reason the value was rejected.
        """
        adapter = _adapter(self)
        try:
            parsed = adapter.validate_python(value)
        except ValidationError as e:
            raise ConfigValidationError(
                _issues_from(e, prefix=self.path), hint=field_spec_hint(self.key)
            ) from e
        return adapter.dump_python(parsed, mode="json")


_ADAPTERS: dict[str, TypeAdapter[Any]] = {}


def _adapter(spec: FieldSpec) -> TypeAdapter[Any]:
    adapter = _ADAPTERS.get(spec.key)
    if adapter is None:
        adapter = TypeAdapter(spec.annotation)
        _ADAPTERS[spec.key] = adapter
    return adapter


def _server_info_fields() -> tuple[FieldSpec, ...]:
    return tuple(
        FieldSpec(
            name=name,
            attr=name,
            kind=FieldKind.STRING,
            annotation=str,
            optional=True,
            parent="serverInfo",
        )
        for name in ServerInfo.model_fields
    )


FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("server", "server", FieldKind.COMMAND, ServerCommand, optional=False),
    FieldSpec(
        "privateKey", "private_key", FieldKind.STRING, PrivateKey, optional=False
    ),
    FieldSpec("relays", "relays", FieldKind.STRING_LIST, RelayList, optional=False),
    FieldSpec("public", "public", FieldKind.BOOLEAN, bool, optional=True),
    FieldSpec(
        "serverInfo",
        "server_info",
        FieldKind.RECORD,
        ServerInfo,
        optional=True,
        children=_server_info_fields(),
    ),
    FieldSpec(
        "allowedPublicKeys",
        "allowed_public_keys",
        FieldKind.STRING_LIST,
        PublicKeyList,
        optional=True,
    ),
    FieldSpec(
        "encryptionMode",
        "encryption_mode",
        FieldKind.CHOICE,
        Mode,
        optional=True,
        choices=tuple(mode.value for mode in EncryptionMode),
    ),
)


def iter_leaf_fields() -> Iterator[FieldSpec]:
    """Yield every non-record field, expanding records into their children."""
    for spec in FIELDS:
        if spec.is_record:
            yield from spec.children
        else:
            yield spec


def get_field(key: str) -> FieldSpec:
    """Look up a descriptor by dotted key (``relays``, ``serverInfo.name``)."""
    for spec in FIELDS:
        if spec.key == key:
            return spec
        for child in spec.children:
            if child.key == key:
                return child
    raise KeyError(key)


# --- Immutable runtime payload ---


@dataclass(frozen=True)
class FrozenConfig:
    """Immutable, validated gateway configuration.

    Constructed once per process by ``resolve_config`` and handed to the
    bootstrap step. The private key is never included in its string form.
    """

    server: tuple[str, ...]
    private_key: str
    relays: tuple[str, ...]
    public: bool
    server_info: Mapping[str, str] | None
    allowed_public_keys: tuple[str, ...] | None
    encryption_mode: EncryptionMode

    @property
    def command(self) -> str:
        return self.server[0]

    @property
    def command_args(self) -> tuple[str, ...]:
        return self.server[1:]

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase, YAML/JSON friendly mapping (secrets included)."""
        out: dict[str, Any] = {
            "server": list(self.server),
            "privateKey": self.private_key,
            "relays": list(self.relays),
            "public": self.public,
        }
        if self.server_info is not None:
            out["serverInfo"] = dict(self.server_info)
        if self.allowed_public_keys is not None:
            out["allowedPublicKeys"] = list(self.allowed_public_keys)
        out["encryptionMode"] = self.encryption_mode.value
        return out

    def __str__(self) -> str:
        """String representation with redacted private key for safe logging."""
        fields = []
        for field in self.__dataclass_fields__:
            value = getattr(self, field)
            if field == "private_key":
                fields.append(f"{field}='[REDACTED]'")
            elif isinstance(value, MappingProxyType):
                fields.append(f"{field}={dict(value)!r}")
            else:
                fields.append(f"{field}={value!r}")
        return f"FrozenConfig({', '.join(fields)})"

    __repr__ = __str__


def _freeze(settings: Settings) -> FrozenConfig:
    """Convert validated Settings to an immutable FrozenConfig."""
    server_info = None
    if settings.server_info is not None:
        server_info = MappingProxyType(
            settings.server_info.model_dump(exclude_none=True)
        )
    allowed = settings.allowed_public_keys
    return FrozenConfig(
        server=tuple(settings.server),
        private_key=settings.private_key,
        relays=tuple(settings.relays),
        public=settings.public,
        server_info=server_info,
        allowed_public_keys=tuple(allowed) if allowed is not None else None,
        encryption_mode=settings.encryption_mode,
    )


# --- Validation ---

_ATTR_TO_KEY = {spec.attr: spec.name for spec in FIELDS}


def _issues_from(
    error: ValidationError, prefix: tuple[str, ...] = ()
) -> list[ValidationIssue]:
    """Flatten Pydantic errors into dotted camelCase issues."""
    issues: list[ValidationIssue] = []
    for err in error.errors():
        path = ".".join(prefix)
        for part in err.get("loc", ()):
            if isinstance(part, int):
                path += f"[{part}]"
                continue
            part = _ATTR_TO_KEY.get(str(part), str(part))
            path = f"{path}.{part}" if path else part
        msg = err.get("msg", "invalid value")
        # Remove "Value error, " prefix if present (Pydantic standard wrapper)
        if msg.startswith("Value error, "):
            msg = msg[13:]
        issues.append(ValidationIssue(path=path, message=msg))
    return issues


def validate(candidate: Mapping[str, Any]) -> FrozenConfig:
    """Validate a merged candidate and freeze it.

    Raises:
        ConfigValidationError: With every violation found, never just the first.
    """
    try:
        settings = Settings.model_validate(dict(candidate))
    except ValidationError as e:
        issues = _issues_from(e)
        first = issues[0].path.split("[")[0] if issues else ""
        hint = field_spec_hint(first) if first else None
        raise ConfigValidationError(issues, hint=hint) from e
    return _freeze(settings)
