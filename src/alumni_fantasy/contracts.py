from datetime import datetime
from typing import Any, Dict, List


def _is_iso_utc(value: Any) -> bool:
    text = str(value or "").strip()
    if not text:
        return False
    try:
        datetime.fromisoformat(text.replace("Z", "+00:00"))
        return True
    except ValueError:
        return False


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    try:
        float(value)
        return True
    except (TypeError, ValueError):
        return False


def validate_envelope(payload: Dict[str, Any]) -> List[str]:
    errors: List[str] = []
    if not isinstance(payload, dict):
        return ["payload_not_object"]

    if "data" not in payload or not isinstance(payload.get("data"), dict):
        errors.append("data_missing_or_not_object")

    if "source_timestamp" not in payload or not _is_iso_utc(payload.get("source_timestamp")):
        errors.append("source_timestamp_missing_or_invalid_iso")

    quality_flags = payload.get("quality_flags")
    if not isinstance(quality_flags, list) or not all(isinstance(item, str) for item in quality_flags):
        errors.append("quality_flags_missing_or_invalid")

    warnings = payload.get("warnings")
    if not isinstance(warnings, list) or not all(isinstance(item, str) for item in warnings):
        errors.append("warnings_missing_or_invalid")

    return errors


def _validate_performer(index: int, position: int, performer: Any) -> List[str]:
    prefix = f"results.{index}.performers.{position}"
    if not isinstance(performer, dict):
        return [f"{prefix}_not_object"]
    errors: List[str] = []
    if not isinstance(performer.get("name"), str):
        errors.append(f"{prefix}.name_invalid")
    if not isinstance(performer.get("position"), str):
        errors.append(f"{prefix}.position_invalid")
    if not _is_number(performer.get("points")):
        errors.append(f"{prefix}.points_invalid")
    return errors


def validate_scores_envelope(payload: Dict[str, Any]) -> List[str]:
    errors = validate_envelope(payload)
    if errors:
        return errors

    data = payload["data"]
    for key in ("season", "week"):
        if not isinstance(data.get(key), int):
            errors.append(f"{key}_missing_or_invalid")
    if not isinstance(data.get("format"), str):
        errors.append("format_missing_or_invalid")

    results = data.get("results")
    if not isinstance(results, list):
        return errors + ["results_missing_or_invalid"]

    previous = None
    for index, row in enumerate(results):
        if not isinstance(row, dict):
            errors.append(f"results.{index}_not_object")
            continue
        if not isinstance(row.get("school"), str) or not row.get("school"):
            errors.append(f"results.{index}.school_invalid")
        if not _is_number(row.get("total_points")):
            errors.append(f"results.{index}.total_points_invalid")
            continue
        performers = row.get("performers")
        if not isinstance(performers, list):
            errors.append(f"results.{index}.performers_invalid")
        else:
            for position, performer in enumerate(performers):
                errors.extend(_validate_performer(index, position, performer))

        current = (-float(row["total_points"]), str(row.get("school")))
        if previous is not None and current < previous:
            errors.append(f"results.{index}_out_of_order")
        previous = current

    return errors
