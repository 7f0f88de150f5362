"""
Configuration schemas using Pydantic for validation and type safety.
"""

from datetime import date, datetime
from typing import Optional, Literal, Dict, Any
from pydantic import BaseModel, Field, field_validator, model_validator


class DataConfig(BaseModel):
    """Data source configuration"""
    options_csv: str = Field(description="Path to historical option rows CSV")
    underlying_csv: Optional[str] = Field(
        default=None,
        description="Optional date/close CSV; if omitted, prices come from the option rows",
    )
    cache_ttl_seconds: float = Field(default=300.0, gt=0, description="TTL for the loaded-chain cache")


class EngineConfig(BaseModel):
    """Backtest engine configuration"""
    symbol: str = Field(description="Underlying symbol (e.g., 'AAPL')")
    start: str = Field(description="Start date (ISO format, e.g., '2024-01-02')")
    end: str = Field(description="End date (ISO format, e.g., '2024-03-28')")
    initial_cash: float = Field(default=100_000.0, gt=0, description="Starting cash")

    @field_validator("start", "end", mode="before")
    @classmethod
    def validate_date_string(cls, v):
        """Keep start/end as YYYY-MM-DD strings"""
        if isinstance(v, datetime):
            return v.strftime("%Y-%m-%d")
        if isinstance(v, date):
            return v.isoformat()
        if isinstance(v, str):
            try:
                return date.fromisoformat(v.strip()[:10]).isoformat()
            except ValueError:
                pass
        raise ValueError(f"Invalid date format: {v}. Expected ISO date string (YYYY-MM-DD)")

    @model_validator(mode="after")
    def check_range(self):
        if self.start > self.end:
            raise ValueError(f"start ({self.start}) must be on or before end ({self.end})")
        return self

    def get_start_date(self) -> date:
        return date.fromisoformat(self.start)

    def get_end_date(self) -> date:
        return date.fromisoformat(self.end)


class ReportingConfig(BaseModel):
    """Reporting configuration"""
    run_dir_root: str = Field(default="runs", description="Root directory for run outputs")
    save_artifacts: bool = Field(default=True, description="Write run artifacts to run_dir_root")
    save_csv: bool = Field(default=True, description="Save CSV files")
    save_log: bool = Field(default=True, description="Save run log")
    run_id_mode: Literal["deterministic", "timestamp"] = Field(
        default="deterministic", description="How run ids are generated"
    )


class StrategyConfig(BaseModel):
    """Strategy configuration"""
    name: str = Field(description="Strategy name (must be registered)")
    params: Dict[str, Any] = Field(default_factory=dict, description="Strategy parameters")


class RunConfig(BaseModel):
    """Complete run configuration"""
    data: DataConfig
    engine: EngineConfig
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)
    strategy: StrategyConfig
