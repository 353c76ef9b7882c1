"""
Tariff API Views.

JSON endpoints for effective tariff, stored unit costs and landed cost
comparison. Handlers only parse input and serialize results.
"""

from flask import Blueprint, request, jsonify

from dutystack.errors import InvalidHtsCodeError
from dutystack.services.landed_cost import (
    DEFAULT_QUANTITY,
    DEFAULT_WEIGHT_PER_UNIT_KG,
    compare_landed_costs,
    get_hts_cost_data,
)
from dutystack.services.tariff_calculator import compute_effective_tariff

bp = Blueprint("tariff", __name__)


def _error(message, status):
    return jsonify({"success": False, "error": message}), status


_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off"}


def _parse_bool(value, default):
    """Accept a JSON boolean or its common string forms."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValueError(f"expected a boolean, got {value!r}")


def _split_codes(value):
    if not value:
        return None
    return [code for code in value.split(",") if code.strip()]


@bp.route("/tariff/effective", methods=["POST"])
def effective_tariff():
    """
    Compute the effective tariff for one product/origin.

    Body:
        country_code: ISO-2 origin (required)
        hts_code: HTS code with or without dots (required)
        base_mfn_rate: Base MFN rate in percent (default 0)
        include_section_232: Apply Section 232 tables (default true)
    """
    data = request.get_json(silent=True) or {}

    country_code = (data.get("country_code") or "").strip()
    hts_code = (data.get("hts_code") or "").strip()
    if not country_code or not hts_code:
        return _error("country_code and hts_code are required", 400)

    try:
        base_mfn_rate = float(data.get("base_mfn_rate") or 0)
    except (TypeError, ValueError):
        return _error("base_mfn_rate must be a number", 400)

    try:
        include_section_232 = _parse_bool(data.get("include_section_232"), True)
    except ValueError:
        return _error("include_section_232 must be a boolean", 400)

    try:
        result = compute_effective_tariff(
            country_code,
            hts_code,
            base_mfn_rate=base_mfn_rate,
            include_section_232=include_section_232,
        )
    except InvalidHtsCodeError as e:
        return _error(str(e), 400)

    return jsonify({"success": True, **result.as_dict()})


@bp.route("/costs/<hts_code>", methods=["GET"])
def hts_costs(hts_code):
    """Stored unit-cost statistics per origin country."""
    try:
        rows = get_hts_cost_data(hts_code)
    except InvalidHtsCodeError as e:
        return _error(str(e), 400)

    if not rows:
        return _error(f"No cost data for HTS {hts_code}", 404)

    return jsonify({
        "success": True,
        "hts_code": rows[0].hts_code,
        "countries": [row.as_dict() for row in rows],
    })


@bp.route("/landed-cost/<hts_code>", methods=["GET"])
def landed_cost(hts_code):
    """
    Landed cost comparison across origins.

    Query params:
        base_mfn_rate: Base MFN rate in percent (default 0)
        min_confidence: Minimum cost confidence score (default COST_MIN_CONFIDENCE)
        include: Comma-separated ISO-2 codes to include
        exclude: Comma-separated ISO-2 codes to exclude
        quantity: Units per entry for fee allocation (default 1000)
        weight_per_unit_kg: Shipping weight per unit (default 0.5)
    """
    try:
        base_mfn_rate = request.args.get("base_mfn_rate", 0, type=float)
        min_confidence = request.args.get("min_confidence", type=float)
        comparison = compare_landed_costs(
            hts_code,
            base_mfn_rate=base_mfn_rate,
            min_confidence=min_confidence,
            include_countries=_split_codes(request.args.get("include")),
            exclude_countries=_split_codes(request.args.get("exclude")),
            quantity=request.args.get("quantity", DEFAULT_QUANTITY, type=float),
            weight_per_unit_kg=request.args.get(
                "weight_per_unit_kg", DEFAULT_WEIGHT_PER_UNIT_KG, type=float
            ),
        )
    except ValueError as e:
        # Includes InvalidHtsCodeError
        return _error(str(e), 400)

    if not comparison.countries:
        return _error(f"No cost data for HTS {hts_code}", 404)

    return jsonify({"success": True, **comparison.as_dict()})
