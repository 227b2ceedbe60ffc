from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    database_url: str = "sqlite:///./dealmatch.db"
    engine_version: str = "2026-10.v1"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Tenancy / auth ----
    auth_mode: str = "dev"  # dev|jwt
    dev_auto_provision: bool = True

    jwt_secret: str = "dev-only-secret-change-me-before-deploying"

    # ---- Market defaults ----
    default_currency: str = "XOF"
    default_country: str = "CI"

    # ---- Match weights (must sum to 1.0) ----
    match_weight_budget: float = 0.35
    match_weight_location: float = 0.25
    match_weight_size: float = 0.15
    match_weight_features: float = 0.15
    match_weight_price_coherence: float = 0.10

    # ---- Budget dimension ----
    budget_tolerance_pct: float = 0.20  # of band width
    budget_point_tolerance_pct: float = 0.10  # of the bound, single-point / one-sided bands
    budget_point_tolerance_abs: float | None = None

    # ---- Location dimension ----
    location_same_region_score: float = 0.6
    location_same_country_score: float = 0.3

    # ---- Size dimension ----
    size_room_penalty: float = 0.25
    size_bedroom_penalty: float = 0.25
    size_surface_penalty: float = 1.0
    size_unknown_penalty: float = 0.5

    # ---- Price coherence ----
    coherence_min_comparables: int = 3
    coherence_tolerance: float = 0.5
    coherence_cache_ttl_seconds: int = 300

    # ---- Candidate selection ----
    candidate_cap: int = 500
    candidate_band_multiple: float = 3.0

    # ---- Ranking / execution ----
    match_default_limit: int = 20
    match_max_limit: int = 100
    match_parallel_threshold: int = 250
    match_parallel_workers: int = 2

    def model_post_init(self, __context) -> None:
        env = (self.app_env or "local").strip().lower()
        is_prod = env in ("prod", "production")

        if is_prod:
            if (self.auth_mode or "").strip().lower() == "dev":
                raise ValueError("SECURITY: auth_mode=dev is not allowed in prod")

            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")


settings = Settings()
