# Overview: Service-layer operations for sale numbers; generate-check-retry against the sales table.

from __future__ import annotations

import random
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Sale
from fabricpos.time_utils import utcnow

DEFAULT_PREFIX = "RF"
DEFAULT_MAX_ATTEMPTS = 10
SUFFIX_DIGITS = 3


class SaleNumberExhaustedError(Exception):
    """Every candidate for the day collided with an existing sale."""

    def __init__(self, attempts: int):
        super().__init__(f"Could not generate a unique sale number after {attempts} attempts")
        self.attempts = attempts


def format_sale_number(prefix: str, when: datetime, suffix: int) -> str:
    return f"{prefix}{when:%Y%m%d}{suffix:0{SUFFIX_DIGITS}d}"


def sale_number_exists(sale_number: str) -> bool:
    return db.session.query(Sale.id).filter_by(sale_number=sale_number).first() is not None


def generate_sale_number(now: datetime | None = None, rng: random.Random | None = None) -> str:
    """
    Produce an unused sale number: prefix + YYYYMMDD + 3 random digits.

    Collisions are retried with a fresh suffix on the same date, up to
    SALE_NUMBER_MAX_ATTEMPTS. Read-only: nothing is reserved, the unique
    constraint on sales.sale_number catches a concurrent writer.

    Raises SaleNumberExhaustedError when no candidate is free.
    """
    prefix = current_app.config.get("SALE_NUMBER_PREFIX", DEFAULT_PREFIX)
    max_attempts = current_app.config.get("SALE_NUMBER_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS)
    when = now or utcnow()
    rng = rng or random.SystemRandom()

    for _ in range(max_attempts):
        candidate = format_sale_number(prefix, when, rng.randrange(10 ** SUFFIX_DIGITS))
        if not sale_number_exists(candidate):
            return candidate

    current_app.logger.error(
        "Sale number space exhausted for %s after %d attempts", f"{when:%Y%m%d}", max_attempts
    )
    raise SaleNumberExhaustedError(max_attempts)
