import math

# Units that scale up to a base unit by a fixed factor
SCALED_UNITS = {
    'kg': 1000.0,  # -> g
    'l': 1000.0,   # -> ml
}


def to_safe_number(value):
    """
    Coerce form input, stored values or anything else into a finite float.

    Strings may carry thousands separators ("22,020,020,000") and surrounding
    whitespace. Anything that does not parse to a finite number becomes 0.
    """
    if isinstance(value, bool):
        return 0.0

    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return 0.0
        return number if math.isfinite(number) else 0.0

    if isinstance(value, str):
        cleaned = value.replace(',', '').strip()
        if not cleaned:
            return 0.0
        try:
            number = float(cleaned)
        except ValueError:
            return 0.0
        return number if math.isfinite(number) else 0.0

    return 0.0


def normalize_amount(amount, unit):
    """
    Convert a quantity to its base unit (g, ml or 個).

    kg and L are scaled by 1000, every other unit is taken as already being
    a base unit. Non-positive quantities normalize to 0.
    """
    quantity = to_safe_number(amount)
    if quantity <= 0:
        return 0.0

    factor = SCALED_UNITS.get((unit or '').strip().lower(), 1.0)
    return quantity * factor


def calculate_unit_price(price, quantity):
    """Price per base unit. 0 when the quantity is not positive."""
    price = to_safe_number(price)
    quantity = to_safe_number(quantity)
    if quantity <= 0:
        return 0.0
    return price / quantity


def calculate_line_cost(usage_amount, usage_unit, yield_rate, base_unit_price):
    """
    Cost of one recipe line.

    Usage is inflated by the yield loss (100g at 90% yield needs 111.1g of
    raw material), normalized to the base unit and priced. The result is not
    rounded so that lines can be summed without drift.

    Args:
        usage_amount: Finished quantity used by the recipe
        usage_unit: Unit of usage_amount ('g', 'kg', 'ml', 'L', '個', ...)
        yield_rate: Percentage of raw material surviving preparation
        base_unit_price: Material price per base unit

    Returns:
        Line cost, or 0 when any of the inputs makes it not computable
    """
    usage_amount = to_safe_number(usage_amount)
    yield_rate = to_safe_number(yield_rate)
    base_unit_price = to_safe_number(base_unit_price)

    if yield_rate <= 0 or base_unit_price <= 0 or usage_amount <= 0:
        return 0.0

    effective_usage = usage_amount / (yield_rate / 100)
    return normalize_amount(effective_usage, usage_unit) * base_unit_price


def calculate_menu_metrics(sales_price, total_cost):
    """Gross profit and cost rate (%) of a menu. A loss is reported as a negative profit."""
    sales_price = to_safe_number(sales_price)
    total_cost = to_safe_number(total_cost)

    cost_rate = (total_cost / sales_price) * 100 if sales_price > 0 else 0.0

    return {
        'sales_price': sales_price,
        'total_cost': total_cost,
        'gross_profit': sales_price - total_cost,
        'cost_rate': cost_rate,
    }
