from typing import Any, Dict, Optional, Tuple


def blank_if_none(value: Optional[str]) -> str:
    """Optional text fields are stored and returned as empty strings"""
    return "" if value is None else value


def validate_task_data(task_data: Dict[str, Any]) -> Tuple[bool, str]:
    """Validate task data and return (is_valid, error_message)"""
    name = task_data.get("name")
    if not name or not name.strip():
        return False, "Task name is required"

    return True, ""
