"""
Registration fee calculation

Amounts are whole currency units taken from FEE_STRUCTURE. Client-sent
amounts are never trusted; every caller recomputes through here.
"""

from typing import Optional, Union

from .exceptions import InvalidInputException
from .models import Designation, FEE_STRUCTURE


def parse_designation(designation: Union[str, Designation, None]) -> Designation:
    """
    Resolve a designation value against the fee table

    Raises:
        InvalidInputException: If the value is not a known designation
    """
    if isinstance(designation, Designation):
        return designation
    try:
        return Designation(str(designation).strip().lower())
    except ValueError:
        raise InvalidInputException("designation", f"Invalid designation '{designation}'")


def parse_paper_submission(value: Optional[bool]) -> bool:
    """
    Resolve the paper submission flag

    Only JSON booleans are accepted; a missing value means no paper.

    Raises:
        InvalidInputException: If the value is not a boolean
    """
    if value is None:
        return False
    if not isinstance(value, bool):
        raise InvalidInputException("paperSubmission", "paperSubmission must be true or false")
    return value


def compute_amount(designation: Union[str, Designation], paper_submission: bool) -> int:
    """
    Compute the amount due for a registration

    Args:
        designation: Attendee category
        paper_submission: Whether a paper is being submitted

    Returns:
        Base fee, plus the paper surcharge when a paper is submitted

    Raises:
        InvalidInputException: If the designation is not in the fee table
    """
    fees = FEE_STRUCTURE[parse_designation(designation)]
    amount = fees["base"]
    if paper_submission:
        amount += fees["paper"]
    return amount


def minor_units(amount: int) -> int:
    """Convert whole rupees to paise for the gateway"""
    return int(amount) * 100
