import os
from dataclasses import dataclass
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


@dataclass
class Config:
    """Application configuration."""

    # API Keys
    helius_api_key: str

    # API URLs
    helius_base_url: str = "https://api-mainnet.helius-rpc.com/v0"
    dexscreener_base_url: str = "https://api.dexscreener.com"
    geckoterminal_base_url: str = "https://api.geckoterminal.com/api/v2"

    # Fetch settings
    max_transactions: int = 100
    candle_limit: int = 168  # one week of hourly candles
    rate_limit_delay: float = 0.2  # seconds between API calls
    max_concurrent_lookups: int = 1
    request_timeout: float = 15.0
    max_retries: int = 2
    retry_base_delay: float = 0.5

    # Analysis heuristics
    roundtrip_multiplier: float = 1.5
    holding_dust_threshold: float = 0.001

    # Output settings
    output_format: str = "table"  # table, csv, json

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment variables."""
        helius_key = os.getenv("HELIUS_API_KEY")
        if not helius_key:
            raise ValueError(
                "HELIUS_API_KEY environment variable is required")

        return cls(
            helius_api_key=helius_key,
            helius_base_url=os.getenv(
                "HELIUS_BASE_URL", "https://api-mainnet.helius-rpc.com/v0"),
            dexscreener_base_url=os.getenv(
                "DEXSCREENER_BASE_URL", "https://api.dexscreener.com"),
            geckoterminal_base_url=os.getenv(
                "GECKOTERMINAL_BASE_URL", "https://api.geckoterminal.com/api/v2"),
            max_transactions=int(os.getenv("MAX_TRANSACTIONS", "100")),
            candle_limit=int(os.getenv("CANDLE_LIMIT", "168")),
            rate_limit_delay=float(os.getenv("RATE_LIMIT_DELAY", "0.2")),
            max_concurrent_lookups=int(
                os.getenv("MAX_CONCURRENT_LOOKUPS", "1")),
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", "15")),
            max_retries=int(os.getenv("MAX_RETRIES", "2")),
            retry_base_delay=float(os.getenv("RETRY_BASE_DELAY", "0.5")),
            roundtrip_multiplier=float(
                os.getenv("ROUNDTRIP_MULTIPLIER", "1.5")),
            holding_dust_threshold=float(
                os.getenv("HOLDING_DUST_THRESHOLD", "0.001")),
            output_format=os.getenv("OUTPUT_FORMAT", "table"),
        )
