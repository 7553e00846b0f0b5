"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class HistorySettings(BaseSettings):
    """Rolling price-window configuration for the market history store."""

    model_config = SettingsConfigDict(env_prefix="HISTORY_")

    default_capacity: int = 50  # points kept per live series
    extended_capacity: int = 100  # points kept per synthetic-seeded series
    seed_synthetic: bool = True
    synthetic_days: int = 30
    synthetic_volatility: float = 0.5  # 50% annualized
    synthetic_drift: float = 0.1  # 10% annualized
    synthetic_prices: dict[str, float] = {
        "BTC": 65000.0,
        "ETH": 3200.0,
        "SOL": 150.0,
    }


class PriceFeedSettings(BaseSettings):
    """Price feed polling and quality thresholds."""

    model_config = SettingsConfigDict(env_prefix="FEED_")

    poll_interval: float = 10.0  # seconds between polls
    stale_threshold_ms: int = 60_000  # quotes older than 60s are stale
    max_uncertainty: float = 0.01  # conf / |price| above 1% is unsafe


class ForecastSettings(BaseSettings):
    """Default forecast horizon, confidence and smoothing constants."""

    model_config = SettingsConfigDict(env_prefix="FORECAST_")

    horizon_days: int = 7
    confidence_level: float = 0.95
    smoothing_alpha: float = 0.3  # Holt level constant
    smoothing_beta: float = 0.1  # Holt trend constant


class RiskSettings(BaseSettings):
    """Risk metric aggregation parameters."""

    model_config = SettingsConfigDict(env_prefix="RISK_")

    diversification_factor: float = 0.85  # applied to multi-position portfolios


class AllocationSettings(BaseSettings):
    """Three-bucket allocator defaults.

    Controls bucket yields, the VaR ceiling for the volatile bucket, the
    uncertainty safety gate, and the search grid resolution.
    All fields configurable via ALLOCATION_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="ALLOCATION_")

    stable_earn_apy: float = 0.06
    sol_staking_apy: float = 0.07
    max_var95_loss_pct: float = 0.10  # at most 10% VaR loss on the volatile bucket
    max_uncertainty: float = 0.01
    horizon_days: int = 7
    step_pct: int = 5
    risk_aversion: float = 0.35  # lambda in E[ret] - lambda * worst_loss


class DecisionSettings(BaseSettings):
    """Decision engine and certificate parameters."""

    model_config = SettingsConfigDict(env_prefix="DECISION_")

    stablecoin: str = "USDC"
    certificate_version: str = "1.0.0"
    max_resolved_decisions: int = 500  # approved/rejected workflows kept for lookup


class PolicySettings(BaseSettings):
    """Spending policy limits used by the policy engine."""

    model_config = SettingsConfigDict(env_prefix="POLICY_")

    max_daily_spend_usd: float = 1000.0
    max_single_transaction_usd: float = 500.0
    require_approval_above_usd: float = 100.0
    preferred_stablecoins: list[str] = ["USDC", "USDT"]
    blocked_tokens: list[str] = []


class DashboardSettings(BaseSettings):
    """Dashboard server configuration."""

    model_config = SettingsConfigDict(env_prefix="DASHBOARD_")

    host: str = "0.0.0.0"
    port: int = 8080
    enabled: bool = True


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: str = "console"  # "json" for machine-readable output
    history: HistorySettings = HistorySettings()
    feed: PriceFeedSettings = PriceFeedSettings()
    forecast: ForecastSettings = ForecastSettings()
    risk: RiskSettings = RiskSettings()
    allocation: AllocationSettings = AllocationSettings()
    decision: DecisionSettings = DecisionSettings()
    policy: PolicySettings = PolicySettings()
    dashboard: DashboardSettings = DashboardSettings()
