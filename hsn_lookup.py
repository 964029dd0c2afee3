"""Fuzzy HSN/SAC code and GST rate suggestions from a CSV table."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List

import pandas as pd  # type: ignore
from rapidfuzz import process, fuzz, utils as fuzz_utils  # type: ignore

from exceptions import ConfigurationError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class HSNSuggestion:
    hsn_code: str
    description: str
    rate: Decimal
    score: float


class HSNLookup:
    def __init__(self, csv_path: str):
        """Load HSN code dataset (CSV must have columns: hsn_code, Description, rate)."""
        try:
            self.df = pd.read_csv(csv_path, dtype=str)
        except (OSError, ValueError) as exc:
            raise ConfigurationError(f"Cannot read HSN table {csv_path}: {exc}") from exc
        # normalize columns (case-insensitive)
        self.df.columns = [str(c).strip().lower() for c in self.df.columns]
        if "hsn" in self.df.columns and "hsn_code" not in self.df.columns:
            self.df.rename(columns={"hsn": "hsn_code"}, inplace=True)
        for column in ("hsn_code", "description", "rate"):
            if column not in self.df.columns:
                raise ConfigurationError(f"HSN table {csv_path} must have a {column} column")
        self.df = self.df.dropna(subset=["description"])
        self.df["hsn_code"] = self.df["hsn_code"].fillna("").str.strip()
        self.df["rate"] = self.df["rate"].fillna("").str.strip().str.rstrip("%").str.strip()
        rates = pd.to_numeric(self.df["rate"], errors="coerce")
        valid = (rates >= 0) & (rates <= 100)
        if not valid.all():
            bad = self.df.loc[~valid, "hsn_code"].tolist()
            log.warning("Skipping %d HSN rows without a usable rate: %s", len(bad), bad)
        self.df = self.df[valid].reset_index(drop=True)
        self._choices = self.df["description"].astype(str).tolist()
        log.info("Loaded %d HSN codes from %s", len(self.df), csv_path)

    def __len__(self) -> int:
        return len(self.df)

    def suggest(self, description: str, limit: int = 1, min_score: float = 0) -> List[HSNSuggestion]:
        """Suggest closest HSN codes for an item description, best match first."""
        if not description or not description.strip() or not self._choices:
            return []
        matches = process.extract(
            description, self._choices, scorer=fuzz.WRatio, processor=fuzz_utils.default_process,
            limit=limit, score_cutoff=min_score,
        )
        results = []
        for match, score, idx in matches:
            row = self.df.iloc[idx]
            results.append(HSNSuggestion(
                hsn_code=row["hsn_code"],
                description=match,
                rate=Decimal(row["rate"]),
                score=float(score),
            ))
        return results
