from typing import Any, Dict, List, Optional

from bson import ObjectId


def normalize_defaults(addresses: List[Dict[str, Any]], preferred: Optional[ObjectId] = None) -> List[Dict[str, Any]]:
    """Leave exactly one default address per address type.

    ``preferred`` wins for its type when it is flagged default; otherwise the
    first address already flagged keeps it, and a type with no default
    promotes its first address.
    """
    by_type: Dict[str, List[Dict[str, Any]]] = {}
    for address in addresses:
        by_type.setdefault(address.get("type"), []).append(address)

    for group in by_type.values():
        winner = None
        if preferred is not None:
            winner = next((a for a in group if a.get("_id") == preferred and a.get("is_default")), None)
        if winner is None:
            winner = next((a for a in group if a.get("is_default")), group[0])
        for address in group:
            address["is_default"] = address is winner
    return addresses


def find_address(addresses: List[Dict[str, Any]], address_id: ObjectId) -> Optional[Dict[str, Any]]:
    return next((a for a in addresses if a.get("_id") == address_id), None)
