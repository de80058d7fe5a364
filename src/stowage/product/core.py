import enum
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import ClassVar

from stowage.errors import IncompatibleUnitError, ValidationError

# Fixed-point policy for every amount: three decimal places, round half-up.
AMOUNT_PLACES = 3
AMOUNT_QUANTUM = Decimal(1).scaleb(-AMOUNT_PLACES)

# Allocation runs on int64 quanta; no amount may exceed that range.
MAX_QUANTA = 2**63 - 1
MAX_AMOUNT = Decimal(MAX_QUANTA).scaleb(-AMOUNT_PLACES)


class Commodity(enum.Enum):
    CORN = "corn"
    WHEAT = "wheat"
    OIL = "oil"


class Unit(enum.Enum):
    BUSHEL = "bushel"
    STANDARD_LITRE = "standard_litre"
    BARREL = "barrel"
    METRIC_TONNE = "metric_tonne"


def round_amount(value: Decimal, rounding: str = ROUND_HALF_UP) -> Decimal:
    """Quantize a decimal to the fixed amount precision."""
    try:
        return value.quantize(AMOUNT_QUANTUM, rounding=rounding)
    except InvalidOperation as exc:
        raise ValidationError(f"Amount {value} is out of range") from exc


def to_amount(value: object) -> Decimal:
    """
    Coerce a raw number (int, str, float, Decimal) into a rounded amount.

    Floats go through ``str`` so 0.1 becomes Decimal("0.1") rather than its
    binary expansion.
    """
    if isinstance(value, bool):
        raise ValidationError(f"Amount must be numeric, got {value!r}")
    try:
        if isinstance(value, float):
            value = str(value)
        amount = Decimal(value)  # type: ignore[arg-type]
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError(f"Amount must be numeric, got {value!r}") from exc
    if not amount.is_finite():
        raise ValidationError(f"Amount must be finite, got {value!r}")
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"Amount {value!r} exceeds the maximum {MAX_AMOUNT}")
    return round_amount(amount)


@dataclass(frozen=True, order=True)
class Quantity:
    """
    A non-negative amount tagged with its unit.

    Never instantiated directly: each unit has its own subclass so that two
    quantities only combine when they share a type.
    """

    amount: Decimal
    unit: ClassVar[Unit]

    def __post_init__(self) -> None:
        if type(self) is Quantity:
            raise TypeError("Quantity is abstract; use a unit variant")
        amount = to_amount(self.amount)
        if amount < 0:
            raise ValidationError(
                f"{type(self).__name__} amount cannot be negative: {amount}"
            )
        object.__setattr__(self, "amount", amount)

    def _check_same_unit(self, other: "Quantity") -> None:
        if type(other) is not type(self):
            raise IncompatibleUnitError(
                f"Cannot combine {type(self).__name__} with {type(other).__name__} "
                "without conversion",
                source=self.unit,
                target=getattr(other, "unit", None),
            )

    def __add__(self, other: "Quantity") -> "Quantity":
        if not isinstance(other, Quantity):
            return NotImplemented
        self._check_same_unit(other)
        return type(self)(self.amount + other.amount)

    def __sub__(self, other: "Quantity") -> "Quantity":
        if not isinstance(other, Quantity):
            return NotImplemented
        self._check_same_unit(other)
        return type(self)(self.amount - other.amount)

    def __str__(self) -> str:
        return f"{self.amount} {self.unit.value}"


@dataclass(frozen=True, order=True)
class Bushel(Quantity):
    unit: ClassVar[Unit] = Unit.BUSHEL


@dataclass(frozen=True, order=True)
class StandardLitre(Quantity):
    unit: ClassVar[Unit] = Unit.STANDARD_LITRE


@dataclass(frozen=True, order=True)
class Barrel(Quantity):
    unit: ClassVar[Unit] = Unit.BARREL


@dataclass(frozen=True, order=True)
class MetricTonne(Quantity):
    unit: ClassVar[Unit] = Unit.METRIC_TONNE


QUANTITY_TYPES: dict[Unit, type[Quantity]] = {
    Unit.BUSHEL: Bushel,
    Unit.STANDARD_LITRE: StandardLitre,
    Unit.BARREL: Barrel,
    Unit.METRIC_TONNE: MetricTonne,
}


def quantity_of(unit: Unit, amount: object) -> Quantity:
    """Build the variant for ``unit`` holding ``amount``."""
    return QUANTITY_TYPES[unit](amount)  # type: ignore[arg-type]


def parse_commodity(name: str) -> Commodity:
    """Case-insensitive lookup by enum name or value."""
    key = name.strip()
    try:
        return Commodity[key.upper()]
    except KeyError:
        return Commodity(key.lower())


def parse_unit(name: str) -> Unit:
    """Case-insensitive lookup by enum name or value."""
    key = name.strip()
    try:
        return Unit[key.upper()]
    except KeyError:
        return Unit(key.lower())
