"""Matching signal scorers -- pure functions on plain values."""

from solar_recon.matching.scorers.capacity_scorer import capacity_bucket, capacity_score
from solar_recon.matching.scorers.date_scorer import date_bonus, dates_within, days_between
from solar_recon.matching.scorers.similarity_scorer import name_similarity

__all__ = [
    "capacity_bucket",
    "capacity_score",
    "date_bonus",
    "dates_within",
    "days_between",
    "name_similarity",
]
