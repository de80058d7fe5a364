"""
Unit-conversion registry.

Maps each commodity to its canonical unit and holds a static table of
conversion factors. A factor registered for ``(commodity, A, B)`` means
``1 A == factor B``; the reverse direction divides by the same factor.
Nothing is chained: if only corn bushel->litre and bushel->tonne exist,
litre->tonne is rejected.
"""

from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Mapping

from stowage.errors import IncompatibleUnitError
from stowage.product.core import (
    Commodity,
    Quantity,
    Unit,
    quantity_of,
    round_amount,
)

# US bushel volume is exact by definition; weights are the USDA standard
# test weights (corn 56 lb, wheat 60 lb).
LITRES_PER_BUSHEL = Decimal("35.23907016688")
LITRES_PER_BARREL = Decimal("158.987294928")

# Digits carried while converting, so directed rounding sees the exact value
CONVERSION_PRECISION = 60

DEFAULT_CANONICAL_UNITS: dict[Commodity, Unit] = {
    Commodity.CORN: Unit.BUSHEL,
    Commodity.WHEAT: Unit.BUSHEL,
    Commodity.OIL: Unit.BARREL,
}

DEFAULT_FACTORS: dict[tuple[Commodity, Unit, Unit], Decimal] = {
    (Commodity.CORN, Unit.BUSHEL, Unit.STANDARD_LITRE): LITRES_PER_BUSHEL,
    (Commodity.CORN, Unit.BUSHEL, Unit.METRIC_TONNE): Decimal("0.0254012"),
    (Commodity.WHEAT, Unit.BUSHEL, Unit.STANDARD_LITRE): LITRES_PER_BUSHEL,
    (Commodity.WHEAT, Unit.BUSHEL, Unit.METRIC_TONNE): Decimal("0.0272155"),
    (Commodity.OIL, Unit.BARREL, Unit.STANDARD_LITRE): LITRES_PER_BARREL,
}


class UnitRegistry:
    """Canonical units and static conversion factors per commodity."""

    def __init__(
        self,
        canonical_units: Mapping[Commodity, Unit] | None = None,
        factors: Mapping[tuple[Commodity, Unit, Unit], Decimal] | None = None,
    ) -> None:
        self._canonical = dict(
            DEFAULT_CANONICAL_UNITS if canonical_units is None else canonical_units
        )
        self._factors: dict[tuple[Commodity, Unit, Unit], Decimal] = {}
        for (commodity, source, target), factor in (
            DEFAULT_FACTORS if factors is None else factors
        ).items():
            factor = Decimal(factor)
            if factor <= 0:
                raise ValueError(
                    f"Conversion factor for {commodity.name} {source.name}->"
                    f"{target.name} must be positive"
                )
            self._factors[(commodity, source, target)] = factor

    def canonical_unit(self, commodity: Commodity) -> Unit:
        try:
            return self._canonical[commodity]
        except KeyError:
            raise IncompatibleUnitError(
                f"No canonical unit registered for {commodity.name}",
                commodity=commodity,
            ) from None

    def can_convert(self, commodity: Commodity, source: Unit, target: Unit) -> bool:
        return (
            source == target
            or (commodity, source, target) in self._factors
            or (commodity, target, source) in self._factors
        )

    def convert(
        self,
        quantity: Quantity,
        target_unit: Unit,
        commodity: Commodity,
        rounding: str = ROUND_HALF_UP,
    ) -> Quantity:
        """
        Convert ``quantity`` of ``commodity`` into ``target_unit``.

        ``rounding`` is any ``decimal`` rounding mode; capacities use
        ROUND_FLOOR so a converted limit never exceeds the declared one.

        Raises:
            IncompatibleUnitError: no factor links the two units for this
                commodity.
        """
        source = quantity.unit
        if source == target_unit:
            return quantity

        factor = self._factors.get((commodity, source, target_unit))
        if factor is not None:
            with localcontext() as ctx:
                ctx.prec = CONVERSION_PRECISION
                amount = round_amount(quantity.amount * factor, rounding)
            return quantity_of(target_unit, amount)

        factor = self._factors.get((commodity, target_unit, source))
        if factor is not None:
            with localcontext() as ctx:
                ctx.prec = CONVERSION_PRECISION
                amount = round_amount(quantity.amount / factor, rounding)
            return quantity_of(target_unit, amount)

        raise IncompatibleUnitError(
            f"No conversion from {source.name} to {target_unit.name} "
            f"for {commodity.name}",
            source=source,
            target=target_unit,
            commodity=commodity,
        )

    def to_canonical(
        self,
        quantity: Quantity,
        commodity: Commodity,
        rounding: str = ROUND_HALF_UP,
    ) -> Quantity:
        return self.convert(
            quantity, self.canonical_unit(commodity), commodity, rounding
        )


DEFAULT_REGISTRY = UnitRegistry()
