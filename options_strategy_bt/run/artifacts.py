"""
Run artifacts: standardized output files for each backtest run.
"""

import json
import hashlib
import logging
import random
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Literal
import pandas as pd

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "options_strategy_bt"

EQUITY_COLUMNS = ["timestamp", "equity", "drawdown_pct"]
TRADE_COLUMNS = [
    "position_id",
    "symbol",
    "option_type",
    "strike",
    "expiration",
    "direction",
    "quantity",
    "entry_price",
    "entry_timestamp",
    "exit_price",
    "exit_timestamp",
    "pnl",
    "pnl_percent",
    "exit_reason",
]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RunArtifacts:
    """
    Writes the output files of one backtest under <root>/<run_id>/.

    Files: config_resolved.json, manifest.json, equity_curve.csv, trades.csv,
    metrics.json, backtest_log.json and (optionally) run.log.
    """

    def __init__(
        self,
        run_dir: Path,
        run_id: str,
        config: Dict[str, Any],
        save_log: bool = True,
    ):
        """
        Args:
            run_dir: Parent directory of all runs, e.g. Path("runs")
            run_id: Directory name for this run
            config: The resolved RunConfig dumped to a dict
            save_log: Mirror package log records of this thread into run.log
        """
        self.run_id = run_id
        self.config = config
        self.run_dir = Path(run_dir) / run_id
        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.log_file = self.run_dir / "run.log"
        self._file_handler = self._attach_log_handler() if save_log else None

    def _attach_log_handler(self) -> logging.Handler:
        handler = logging.FileHandler(self.log_file, encoding="utf-8")
        handler.setLevel(logging.INFO)
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        # run_many executes runs side by side; keep each run.log to its own thread
        owner = threading.get_ident()
        handler.addFilter(lambda record: record.thread == owner)
        logging.getLogger(PACKAGE_LOGGER).addHandler(handler)
        return handler

    def close(self):
        """Detach and close run.log"""
        handler, self._file_handler = self._file_handler, None
        if handler is None:
            return
        logging.getLogger(PACKAGE_LOGGER).removeHandler(handler)
        handler.close()

    def _write_json(self, name: str, payload: Any) -> Path:
        path = self.run_dir / name
        path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
        return path

    def _write_frame(self, name: str, frame: pd.DataFrame, columns: List[str]) -> Path:
        # Empty results still get a header row
        if frame.empty:
            frame = pd.DataFrame(columns=columns)
        path = self.run_dir / name
        frame.to_csv(path, index=False)
        return path

    def write_config_resolved(self):
        return self._write_json("config_resolved.json", self.config)

    def write_manifest(self, metadata: Dict[str, Any]):
        """manifest.json: run id, UTC creation time, config and caller metadata"""
        created = _utc_now().isoformat().replace("+00:00", "Z")
        return self._write_json(
            "manifest.json",
            {"run_id": self.run_id, "created_at": created, "config": self.config, **metadata},
        )

    def write_equity_curve(self, equity_curve: pd.DataFrame):
        return self._write_frame("equity_curve.csv", equity_curve, EQUITY_COLUMNS)

    def write_trades(self, trades: pd.DataFrame):
        return self._write_frame("trades.csv", trades, TRADE_COLUMNS)

    def write_metrics(self, metrics: Dict[str, Any]):
        return self._write_json("metrics.json", metrics)

    def write_backtest_log(self, entries: List[Dict[str, Any]]):
        """backtest_log.json keeps entries, exits and info records in replay order"""
        return self._write_json("backtest_log.json", entries)


def generate_run_id(
    config: Dict[str, Any],
    mode: Literal["deterministic", "timestamp"] = "timestamp",
) -> str:
    """
    Build the directory name for a run.

    "deterministic" hashes the config (key order ignored), so rerunning the same
    config overwrites the same directory. "timestamp" gives
    run-YYYYMMDD-HHMMSS-NNN in UTC.
    """
    if mode == "deterministic":
        canonical = json.dumps(config, sort_keys=True, default=str).encode("utf-8")
        return "run-" + hashlib.sha256(canonical).hexdigest()[:12]
    if mode == "timestamp":
        return f"run-{_utc_now():%Y%m%d-%H%M%S}-{random.randint(100, 999)}"
    raise ValueError(f"Invalid run_id_mode: {mode}")
