from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..models.job import (
    BUDGET_TYPES, CATEGORIES, CURRENCIES, EXPERIENCE_LEVELS, LOCATIONS, TIMELINES,
)
from ..models.proposal import DURATIONS, PROPOSAL_CURRENCIES

def to_number(value: Any) -> Optional[float]:
    """Numbers and numeric strings become floats; anything else is None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None

def to_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed

def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())

def _not_text(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()

def validate_job_input(data: Dict[str, Any]) -> Dict[str, str]:
    """Returns every invalid field of a job payload, keyed by field name."""
    errors = {}

    for field in ("title", "description", "category", "budget", "budgetType", "timeline", "experienceLevel"):
        if _blank(data.get(field)):
            errors[field] = f"{field} is required"
    for field in ("title", "description"):
        value = data.get(field)
        if value is not None and not isinstance(value, str):
            errors[field] = f"{field} must be a string"

    title = data.get("title")
    if isinstance(title, str) and len(title.strip()) > 100:
        errors["title"] = "Title must be at most 100 characters"
    description = data.get("description")
    if isinstance(description, str) and len(description.strip()) > 3000:
        errors["description"] = "Description must be at most 3000 characters"

    budget = data.get("budget")
    if budget is not None:
        if not isinstance(budget, dict):
            errors["budget"] = "Budget must be an object with min and max"
        else:
            low, high = to_number(budget.get("min")), to_number(budget.get("max"))
            if low is None or high is None:
                errors["budget"] = "Both minimum and maximum budget are required"
            elif low < 0 or high < 0:
                errors["budget"] = "Budget values cannot be negative"
            elif low > high:
                errors["budget"] = "Minimum budget cannot be greater than maximum budget"
            elif budget.get("currency") and budget["currency"] not in CURRENCIES:
                errors["budget"] = "Invalid currency"

    if data.get("budgetType") and data["budgetType"] not in BUDGET_TYPES:
        errors["budgetType"] = "Budget type must be either fixed or hourly"
    if data.get("experienceLevel") and data["experienceLevel"] not in EXPERIENCE_LEVELS:
        errors["experienceLevel"] = "Invalid experience level"
    if data.get("timeline") and data["timeline"] not in TIMELINES:
        errors["timeline"] = "Invalid timeline"
    if data.get("category") and data["category"] not in CATEGORIES:
        errors["category"] = "Invalid category"
    if data.get("location") and data["location"] not in LOCATIONS:
        errors["location"] = "Invalid location"

    skills = data.get("skillsRequired", data.get("skills"))
    if skills is not None and (
        not isinstance(skills, list) or not all(isinstance(s, str) and len(s.strip()) <= 50 for s in skills)
    ):
        errors["skillsRequired"] = "Skills must be a list of strings of at most 50 characters"
    country = data.get("country")
    if country is not None and not isinstance(country, str):
        errors["country"] = "Country must be a string"

    return errors

def validate_proposal_input(data: Dict[str, Any]) -> Dict[str, str]:
    errors = {}

    cover_letter = data.get("coverLetter")
    if _blank(cover_letter):
        errors["coverLetter"] = "coverLetter is required"
    elif not isinstance(cover_letter, str) or len(cover_letter) > 3000:
        errors["coverLetter"] = "Cover letter must be at most 3000 characters"

    bid = data.get("bidAmount")
    if bid is None:
        errors["bidAmount"] = "bidAmount is required"
    else:
        # accept both {amount, currency} and a bare number
        amount = to_number(bid.get("amount")) if isinstance(bid, dict) else to_number(bid)
        currency = bid.get("currency", "USD") if isinstance(bid, dict) else "USD"
        if amount is None or amount < 0:
            errors["bidAmount"] = "Bid amount must be a non-negative number"
        elif currency not in PROPOSAL_CURRENCIES:
            errors["bidAmount"] = "Invalid currency"

    duration = data.get("estimatedDuration")
    if _blank(duration):
        errors["estimatedDuration"] = "estimatedDuration is required"
    elif duration not in DURATIONS:
        errors["estimatedDuration"] = "Invalid estimated duration"

    return errors

def milestone_problems(milestone: Any) -> List[str]:
    """Names of the fields a milestone payload is missing or has malformed."""
    if not isinstance(milestone, dict):
        return ["title", "description", "amount", "dueDate"]
    problems = []
    if _not_text(milestone.get("title")):
        problems.append("title")
    if _not_text(milestone.get("description")):
        problems.append("description")
    amount = to_number(milestone.get("amount"))
    if amount is None or amount < 0:
        problems.append("amount")
    if to_datetime(milestone.get("dueDate")) is None:
        problems.append("dueDate")
    return problems
