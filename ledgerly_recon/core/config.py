from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    database_url: str = "sqlite:///./ledgerly_recon.db"
    debug: bool = False
    log_level: str = "INFO"

    # Statement import
    default_currency: str = "USD"
    sniff_sample_bytes: int = 4096
    utf16_null_ratio: float = 0.05

    # Matching engine
    label_currency_symbol: str = "R"
    match_amount_window_cents: int = 100
    match_amount_step_cents: int = 5
    match_max_day_diff: int = 7
    match_min_score: float = 0.55
    match_amount_weight: float = 0.6
    match_date_weight: float = 0.3
    match_text_weight: float = 0.1

    # Manual link shortlist
    candidate_shortlist_size: int = 8
    candidate_amount_tolerance: float = 5.0

    # Batch workflow
    batch_stats_cap: int = 200
    default_batch_size: int = 50

    # Suggestion explanations
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    ai_enabled: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
