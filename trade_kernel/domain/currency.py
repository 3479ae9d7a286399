"""
Currencies traded at the desk and their minor-unit precision.

OMR and the other Gulf dinars/rials settle in three decimals, which is why
rounding precision is looked up per currency rather than assumed to be 2.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    code: str
    decimal_places: int
    name: str

    @property
    def quantum(self) -> Decimal:
        """Smallest representable amount, e.g. ``Decimal("0.001")`` for OMR."""
        return Decimal(1).scaleb(-self.decimal_places)


def _info(code: str, places: int, name: str) -> tuple[str, CurrencyInfo]:
    return code, CurrencyInfo(code, places, name)


class CurrencyRegistry:
    """
    Closed set of accepted ISO 4217 codes.

    Contract:
        Lookups are case-insensitive and ignore surrounding whitespace.
        Codes outside the set are rejected by ``validate``.
    """

    _KNOWN: ClassVar[dict[str, CurrencyInfo]] = dict([
        _info("OMR", 3, "Omani Rial"),
        _info("BHD", 3, "Bahraini Dinar"),
        _info("KWD", 3, "Kuwaiti Dinar"),
        _info("JOD", 3, "Jordanian Dinar"),
        _info("AED", 2, "UAE Dirham"),
        _info("SAR", 2, "Saudi Riyal"),
        _info("QAR", 2, "Qatari Riyal"),
        _info("INR", 2, "Indian Rupee"),
        _info("USD", 2, "US Dollar"),
        _info("EUR", 2, "Euro"),
        _info("GBP", 2, "Pound Sterling"),
        _info("JPY", 0, "Japanese Yen"),
    ])

    @staticmethod
    def _normalize(code: object) -> str:
        return code.strip().upper() if isinstance(code, str) else ""

    @classmethod
    def lookup(cls, code: str) -> CurrencyInfo | None:
        return cls._KNOWN.get(cls._normalize(code))

    @classmethod
    def is_valid(cls, code: str) -> bool:
        return cls.lookup(code) is not None

    @classmethod
    def require(cls, code: str) -> CurrencyInfo:
        info = cls.lookup(code)
        if info is None:
            raise ValueError(f"Invalid ISO 4217 currency code: {code!r}")
        return info

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        return cls.require(code).decimal_places

    @classmethod
    def quantum(cls, code: str) -> Decimal:
        return cls.require(code).quantum

    @classmethod
    def validate(cls, code: str) -> str:
        """Return the normalized code, raising ``ValueError`` if unknown."""
        return cls.require(code).code
