"""Currency API endpoints."""

import logging
from fastapi import APIRouter, HTTPException, Query, status

import currency
from currency import CurrencyError, convert_price, format_price, DEFAULT_CURRENCY

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/currency",
    tags=["Currency"]
)

# Sync handlers; the rate client blocks on HTTP
@router.get("")
def exchange_rates():
    """Get the latest USD based exchange rates."""
    try:
        return currency.rate_client.get_rates()
    except CurrencyError as e:
        logger.error(f"Currency API error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch exchange rates"
        )

@router.get("/convert")
def convert(
    amount: float = Query(..., allow_inf_nan=False),
    from_currency: str = Query(DEFAULT_CURRENCY, alias="from"),
    to_currency: str = Query("USD", alias="to")
):
    """Convert an amount, using live rates when available."""
    from_currency = from_currency.upper()
    to_currency = to_currency.upper()

    rates = None
    try:
        rates = currency.rate_client.get_rates()['conversion_rates']
    except CurrencyError as e:
        logger.warning(f"Falling back to static exchange rates: {e}")

    converted = convert_price(amount, from_currency, to_currency, rates)
    return {
        "amount": round(converted, 2),
        "currency": to_currency,
        "formatted": format_price(converted, to_currency),
        "live": rates is not None,
    }
