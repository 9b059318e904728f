import re
import jsonpickle
from decimal import Decimal, InvalidOperation
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional

STATUS_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_QUANTITY_RE = re.compile(r"^([+-]?[0-9.]+(?:[eE][+-]?[0-9]+)?)([a-zA-Z]*)$")

_BINARY_SUFFIXES = {
    "Ki": 2**10,
    "Mi": 2**20,
    "Gi": 2**30,
    "Ti": 2**40,
    "Pi": 2**50,
    "Ei": 2**60,
}

_DECIMAL_SUFFIXES = {
    "n": Decimal("1e-9"),
    "u": Decimal("1e-6"),
    "m": Decimal("1e-3"),
    "": Decimal(1),
    "k": Decimal("1e3"),
    "M": Decimal("1e6"),
    "G": Decimal("1e9"),
    "T": Decimal("1e12"),
    "P": Decimal("1e15"),
    "E": Decimal("1e18"),
}


def now() -> str:
    return datetime.now(timezone.utc).isoformat()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def status_timestamp(dt: datetime = None) -> str:
    """Human readable timestamp used in operand state messages."""
    return (dt or utc_now()).strftime(STATUS_TIME_FORMAT)


def sort_dict_keys(d):
    """Recursively sort dictionary keys and handle nested structures."""
    if isinstance(d, dict):
        return {key: sort_dict_keys(value) for key, value in sorted(d.items())}
    elif isinstance(d, list):
        return [sort_dict_keys(item) for item in d]
    else:
        return d


def canonicalize_dict(data) -> str:
    """
    Returns a canonical JSON representation of a dictionary.

    Keys are sorted recursively so two dictionaries that only differ in key
    order produce the same string.
    """
    return jsonpickle.dumps(sort_dict_keys(data), unpicklable=False)


def deep_compare_dict(data1, data2) -> bool:
    """Compare two data structures deeply, ignoring dictionary key order.

    Args:
        data1: First data structure (dict, list, or nested combination)
        data2: Second data structure (dict, list, or nested combination)

    Returns:
        True if data structures are equivalent, False otherwise
    """
    if data1 is None and data2 is None:
        return True
    if data1 is None or data2 is None:
        return False
    if not isinstance(data1, type(data2)) and not isinstance(data2, type(data1)):
        return False
    try:
        return canonicalize_dict(data1) == canonicalize_dict(data2)
    except (TypeError, ValueError):
        return data1 == data2


def upsert_condition(conds: Optional[List[Dict]], newc: Dict) -> List[Dict]:
    """In-memory merge by .type. Only bump lastTransitionTime when status flips."""
    conds = list(conds or [])
    for i, c in enumerate(conds):
        if c.get("type") == newc["type"]:
            ltt = c.get("lastTransitionTime") or now()
            if c.get("status") != newc["status"]:
                ltt = now()
            conds[i] = {**c, **newc, "lastTransitionTime": ltt}
            break
    else:
        conds.append({**newc, "lastTransitionTime": now()})
    return conds


def parse_quantity(quantity) -> Decimal:
    """Parse a kubernetes resource quantity ("500m", "1Gi", "0.5") to a Decimal.

    Raises:
        ValueError: If the quantity is not a recognised format.
    """
    if isinstance(quantity, (int, float, Decimal)):
        return Decimal(str(quantity))
    if not isinstance(quantity, str) or not quantity:
        raise ValueError(f"Invalid quantity: {quantity!r}")
    match = _QUANTITY_RE.match(quantity.strip())
    if match is None:
        raise ValueError(f"Invalid quantity: {quantity!r}")
    number, suffix = match.groups()
    try:
        value = Decimal(number)
    except InvalidOperation:
        raise ValueError(f"Invalid quantity: {quantity!r}")
    if suffix in _BINARY_SUFFIXES:
        return value * _BINARY_SUFFIXES[suffix]
    if suffix in _DECIMAL_SUFFIXES:
        return value * _DECIMAL_SUFFIXES[suffix]
    raise ValueError(f"Invalid quantity suffix: {quantity!r}")


def quantities_equal(a: Optional[Mapping], b: Optional[Mapping]) -> bool:
    """Compare two resource lists (e.g. limits) by quantity value, not spelling."""
    a, b = a or {}, b or {}
    if set(a) != set(b):
        return False
    for key, value in a.items():
        try:
            if parse_quantity(value) != parse_quantity(b[key]):
                return False
        except ValueError:
            if str(value) != str(b[key]):
                return False
    return True


def label_selector(labels: Mapping[str, str]) -> str:
    """Render a label mapping as an equality based selector string."""
    return ",".join(f"{k}={v}" for k, v in labels.items())


def to_plain(data):
    """Copy mapping and list views (e.g. kopf bodies) into plain dicts and lists."""
    if isinstance(data, Mapping):
        return {key: to_plain(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [to_plain(item) for item in data]
    return data
