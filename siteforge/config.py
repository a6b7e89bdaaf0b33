"""Runtime configuration — env-driven, network-aware.

Reads from a .env file and SITEFORGE_* environment variables. Library
components take a ``SiteforgeConfig`` by injection; the module-level
``config`` instance is for the CLI.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict


class UnsupportedNetworkError(ValueError):
    """Raised when a network has no preset and no explicit override."""


class NetworkPreset(BaseModel):
    model_config = ConfigDict(frozen=True)

    package_id: str
    aggregator_url: str


# Published site package and public aggregator per network.
NETWORK_PRESETS: dict[str, NetworkPreset] = {
    "mainnet": NetworkPreset(
        package_id="0x26eb7ee8688da02c5f671679524e379f0b837a12f1d1d799f255b7eea260ad27",
        aggregator_url="https://aggregator.walrus-mainnet.walrus.space",
    ),
    "testnet": NetworkPreset(
        package_id="0xf99aee9f21493e1590e7e5a9aea6f343a1f381031a04a732724871fc294be799",
        aggregator_url="https://aggregator.walrus-testnet.walrus.space",
    ),
}


class SiteforgeConfig(BaseSettings):
    """Deployment configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export SITEFORGE_NETWORK=mainnet
        export SITEFORGE_MAX_EPOCHS=53
        export SITEFORGE_LOG_LEVEL=DEBUG

    Or point at a private deployment::

        SITEFORGE_PACKAGE_ID=0xabc...
        SITEFORGE_AGGREGATOR_URL=http://localhost:31415
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SITEFORGE_",
        env_file_encoding="utf-8",
    )

    network: str = "testnet"
    package_id: str | None = None
    aggregator_url: str | None = None

    # Retention used when the caller asks for "max"
    max_epochs: int = 57
    gas_budget: int | None = None

    http_timeout: float = 30.0
    dynamic_field_page_size: int = 50

    log_level: str = "INFO"

    def _preset(self) -> NetworkPreset:
        preset = NETWORK_PRESETS.get(self.network)
        if preset is None:
            raise UnsupportedNetworkError(
                f"Unsupported network: {self.network!r}. "
                f"Known networks: {sorted(NETWORK_PRESETS)}"
            )
        return preset

    @property
    def resolved_package_id(self) -> str:
        """The site package id, explicit override first."""
        return self.package_id or self._preset().package_id

    @property
    def resolved_aggregator_url(self) -> str:
        """The aggregator base URL, explicit override first."""
        url = self.aggregator_url or self._preset().aggregator_url
        return url.rstrip("/")


config = SiteforgeConfig()
