"""
Dynaconf-powered configuration loader with Pydantic validation.

The configuration service loads the layered YAML files under `config/`,
validates them, and produces probe-friendly `ProbeConfig` instances so the
orchestrator can wire probes without hand-written dictionaries. The
`ConfigStore` holds the live credentials a caller edits between probe runs.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any, Literal

from dynaconf import Dynaconf
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .contracts import ProbeConfig


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    """Case-insensitive dictionary lookup helper."""
    value = raw.get(key) or raw.get(key.upper()) or raw.get(key.lower())
    if isinstance(value, dict):
        return value
    return {}


def _deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge dictionaries without mutating the originals."""
    result: dict[str, Any] = {**base}
    for key, value in updates.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


CONFIG_FILENAMES = ("config.yaml", "secrets.yaml")
_REPO_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_CONFIG_DIR = _REPO_ROOT / "config"
DEMO_SDK_TOKEN = "demo-sdk-token-123"


class ConfigError(RuntimeError):
    """Raised when configuration files are missing or invalid."""


class Credentials(BaseModel):
    """
    Credential tuple read by every probe.

    Emptiness is deliberately not validated here: the initialize probe reports
    missing credentials as a configuration failure instead.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    publishable_key: str = Field(default="")
    business_id: str = Field(default="")
    sdk_token: str = Field(default="")

    @field_validator("publishable_key", "business_id", "sdk_token", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    def missing_fields(self) -> list[str]:
        missing = []
        if not self.publishable_key:
            missing.append("publishable_key")
        if not self.business_id:
            missing.append("business_id")
        return missing

    def masked(self) -> dict[str, str]:
        """Representation safe for logs and API responses."""

        def _mask(value: str) -> str:
            if len(value) <= 8:
                return "*" * len(value)
            return f"{value[:4]}...{value[-4:]}"

        return {
            "publishable_key": _mask(self.publishable_key),
            "business_id": self.business_id,
            "sdk_token": _mask(self.sdk_token),
        }


class SdkSettings(BaseModel):
    """How the payment client is constructed."""

    model_config = ConfigDict(extra="ignore")

    environment: Literal["development", "sandbox"] = Field(default="development")
    demo_sdk_token: str = Field(default=DEMO_SDK_TOKEN)


class ProbeSettings(BaseModel):
    """Fixed test parameters shared by the payment probes."""

    model_config = ConfigDict(extra="ignore")

    amount: float = Field(default=29.99, gt=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    intent_description: str = Field(default="SDK Test Payment")
    card_description: str = Field(default="Test Payment via AxraPay SDK")
    customer_name: str = Field(default="Test User")
    customer_email: str = Field(default="test@example.com")
    card_style: dict[str, str] = Field(
        default_factory=lambda: {
            "backgroundColor": "#ffffff",
            "color": "#374151",
            "borderRadius": "8px",
            "padding": "16px",
            "fontSize": "14px",
            "fontFamily": "Inter, sans-serif",
        }
    )

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()


class CorsSettings(BaseModel):
    """Target and headers of the cross-origin config lookup."""

    model_config = ConfigDict(extra="ignore")

    endpoint: str = Field(default="https://dev.gopremium.africa/api/sdk/config")
    timeout_seconds: float = Field(default=10.0, gt=0)
    verify_ssl: bool = Field(default=True)
    publishable_key_header: str = Field(default="X-AxraPay-Publishable-Key")


class SurfaceSettings(BaseModel):
    """Identifiers of the mount surfaces widgets render into."""

    model_config = ConfigDict(extra="ignore")

    card: str = Field(default="cardFormContainer")
    token: str = Field(default="tokenFormContainer")


class InteractionSettings(BaseModel):
    """Scripted end-user behaviour for the simulated client."""

    model_config = ConfigDict(extra="ignore")

    outcome: Literal["success", "error", "cancel", "none"] = Field(default="success")
    delay_seconds: float = Field(default=0.2, ge=0.0)
    error_message: str = Field(default="Card declined")


class ControlApiSettings(BaseModel):
    """Control API (FastAPI) configuration."""

    model_config = ConfigDict(extra="ignore")

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8080)
    serve_api: bool = Field(default=True)


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    level: str = Field(default="INFO")
    file: Path | None = Field(default=None)
    max_mb: int = Field(default=10, ge=1)
    backup_count: int = Field(default=3, ge=0)


class ConfigSnapshot(BaseModel):
    """
    Validated, strongly typed view of the merged configuration.

    Provides helpers to derive per-probe configuration dictionaries.
    """

    model_config = ConfigDict(extra="ignore")

    credentials: Credentials = Field(default_factory=Credentials)
    sdk: SdkSettings = Field(default_factory=SdkSettings)
    probes: ProbeSettings = Field(default_factory=ProbeSettings)
    cors: CorsSettings = Field(default_factory=CorsSettings)
    surfaces: SurfaceSettings = Field(default_factory=SurfaceSettings)
    interaction: InteractionSettings = Field(default_factory=InteractionSettings)
    control_api: ControlApiSettings = Field(default_factory=ControlApiSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def probe_config(self, probe_name: str) -> ProbeConfig:
        """Produce a ProbeConfig tailored for the requested probe."""

        probes = self.probes

        def _initialize_config() -> ProbeConfig:
            return ProbeConfig(
                options={
                    "environment": self.sdk.environment,
                    "demo_sdk_token": self.sdk.demo_sdk_token,
                }
            )

        def _payment_intent_config() -> ProbeConfig:
            return ProbeConfig(
                options={
                    "amount": probes.amount,
                    "currency": probes.currency,
                    "description": probes.intent_description,
                }
            )

        def _card_form_config() -> ProbeConfig:
            return ProbeConfig(
                options={
                    "surface_id": self.surfaces.card,
                    "amount": probes.amount,
                    "currency": probes.currency,
                    "description": probes.card_description,
                    "customer_name": probes.customer_name,
                    "customer_email": probes.customer_email,
                    "style": dict(probes.card_style),
                }
            )

        def _token_form_config() -> ProbeConfig:
            return ProbeConfig(
                options={
                    "surface_id": self.surfaces.token,
                    "customer_name": probes.customer_name,
                    "customer_email": probes.customer_email,
                    "metadata": {"test": True, "source": "sdk-test"},
                }
            )

        def _cors_config() -> ProbeConfig:
            return ProbeConfig(
                options={
                    "endpoint": self.cors.endpoint,
                    "timeout_seconds": self.cors.timeout_seconds,
                    "verify_ssl": self.cors.verify_ssl,
                    "publishable_key_header": self.cors.publishable_key_header,
                    "demo_sdk_token": self.sdk.demo_sdk_token,
                }
            )

        builders: dict[str, Callable[[], ProbeConfig]] = {
            "initialize": _initialize_config,
            "payment_intent": _payment_intent_config,
            "card_form": _card_form_config,
            "token_form": _token_form_config,
            "cors": _cors_config,
        }

        try:
            builder = builders[probe_name]
        except KeyError as exc:
            raise KeyError(f"No probe configuration defined for {probe_name}") from exc
        return builder()


class ConfigService:
    """
    Runtime facade for loading, validating, and distributing configuration.
    """

    def __init__(
        self,
        *,
        config_dir: str | Path | None = None,
        settings: Dynaconf | None = None,
    ) -> None:
        self._config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
        settings_files = [self._config_dir / name for name in CONFIG_FILENAMES]
        existing_files = [str(path) for path in settings_files if path.exists()]
        if not existing_files and settings is None:
            raise ConfigError(
                f"No configuration files found in {self._config_dir}. "
                "Expected at least config.yaml."
            )

        self._settings = settings or Dynaconf(
            envvar_prefix="AXRAPROBE",
            settings_files=existing_files,
            load_dotenv=True,
            environments=False,
        )
        self._snapshot = self._build_snapshot()

    @property
    def snapshot(self) -> ConfigSnapshot:
        """Latest validated configuration snapshot."""
        return self._snapshot

    def refresh(self) -> ConfigSnapshot:
        """Reload configuration files and rebuild the snapshot."""
        self._settings.reload()
        self._snapshot = self._build_snapshot()
        return self._snapshot

    def apply_changes(self, changes: dict[str, Any]) -> ConfigSnapshot:
        """
        Merge the provided changes into the current configuration snapshot.

        This does not persist the changes to disk.
        """
        raw = self._settings.as_dict()
        # Dynaconf upper-cases top-level keys.
        merged = _deep_merge(raw, {key.upper(): value for key, value in changes.items()})
        self._snapshot = self._build_snapshot(merged)
        return self._snapshot

    def probe_config_for(self, probe: str) -> ProbeConfig:
        return self._snapshot.probe_config(probe)

    def _build_snapshot(self, raw: dict[str, Any] | None = None) -> ConfigSnapshot:
        data = self._extract_snapshot_data(raw or self._settings.as_dict())
        try:
            return ConfigSnapshot.model_validate(data)
        except ValidationError as exc:
            raise ConfigError("Configuration validation failed") from exc

    def _extract_snapshot_data(self, raw: dict[str, Any]) -> dict[str, Any]:
        # Secrets may live top-level (secrets.yaml) or under `credentials`.
        credentials = _deep_merge(_section(raw, "credentials"), _section(raw, "axrapay"))
        return {
            "credentials": credentials,
            "sdk": _section(raw, "sdk"),
            "probes": _section(raw, "probes"),
            "cors": _section(raw, "cors"),
            "surfaces": _section(raw, "surfaces"),
            "interaction": _section(raw, "interaction"),
            "control_api": _section(raw, "control_api"),
            "logging": _section(raw, "logging"),
        }


class ConfigStore:
    """
    Holds the live credential tuple used by every probe.

    Each read returns the current frozen `Credentials`; a probe keeps the value
    it read at invocation time even if the store changes while it runs.
    """

    def __init__(self, credentials: Credentials | None = None) -> None:
        self._credentials = credentials or Credentials()

    @classmethod
    def from_snapshot(cls, snapshot: ConfigSnapshot) -> ConfigStore:
        return cls(snapshot.credentials)

    @property
    def current(self) -> Credentials:
        return self._credentials

    def replace(self, credentials: Credentials) -> Credentials:
        self._credentials = credentials
        return credentials

    def update(self, **changes: Any) -> Credentials:
        """Apply partial credential changes and return the new tuple."""
        unknown = set(changes) - set(Credentials.model_fields)
        if unknown:
            raise ConfigError(f"Unknown credential fields: {sorted(unknown)}")
        data = {**self._credentials.model_dump(), **changes}
        return self.replace(Credentials.model_validate(data))


__all__ = [
    "ConfigError",
    "ConfigService",
    "ConfigSnapshot",
    "ConfigStore",
    "ControlApiSettings",
    "CorsSettings",
    "Credentials",
    "DEMO_SDK_TOKEN",
    "InteractionSettings",
    "LoggingSettings",
    "ProbeSettings",
    "SdkSettings",
    "SurfaceSettings",
]
