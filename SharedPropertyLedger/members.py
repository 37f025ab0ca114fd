"""
Members Module

This module handles the co-owners of a property: the members an expense
can be split between.

Data Model:
    Member stored at: properties/{property_id}/members/{member_id}
    Fields:
        - member_id: string (opaque id, e.g. an auth user id)
        - name: string (display name)

Functions:
    add_member: Add a member to a property.
    get_members: Get all members of a property.
"""

import logging
from typing import Optional

from config.firebase_config import get_db

logger = logging.getLogger(__name__)


class Member:
    """
    A co-owner of a property. Immutable from the engines' perspective.

    Attributes:
        member_id (str): Opaque identifier.
        name (str): Display name.
    """

    def __init__(self, member_id: str, name: str):
        self.member_id = member_id
        self.name = name

    def to_dict(self) -> dict:
        """Convert member to dictionary for Firestore storage."""
        return {"member_id": self.member_id, "name": self.name}

    @classmethod
    def from_dict(cls, data: dict) -> "Member":
        """Create a Member instance from a dictionary."""
        return cls(member_id=data.get("member_id"), name=data.get("name"))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Member):
            return NotImplemented
        return self.member_id == other.member_id and self.name == other.name

    def __hash__(self) -> int:
        return hash((self.member_id, self.name))

    def __repr__(self) -> str:
        return f"Member(id='{self.member_id}', name='{self.name}')"


def _validate_non_empty_string(value: str, field_name: str) -> bool:
    """
    Validate that a string is non-empty.

    Raises:
        ValueError: If string is empty or not a string.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string")
    return True


def _members_ref(db, property_id: str):
    return db.collection("properties").document(property_id).collection("members")


def add_member(property_id: str, member_id: str, name: str) -> Member:
    """
    Add a member to a property (overwrites an existing member with the same id).

    Args:
        property_id: The ID of the property.
        member_id: Opaque member identifier.
        name: Display name.

    Returns:
        Member: The stored member.

    Raises:
        ValueError: If input validation fails.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(property_id, "property_id")
    _validate_non_empty_string(member_id, "member_id")
    _validate_non_empty_string(name, "name")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    member = Member(member_id=member_id.strip(), name=name.strip())
    _members_ref(db, property_id).document(member.member_id).set(member.to_dict())
    logger.info("Stored member %s for property %s", member.member_id, property_id)
    return member


def get_members(property_id: str) -> list[Member]:
    """
    Get all members of a property.

    Raises:
        ValueError: If property_id is invalid.
        RuntimeError: If Firestore is not available.
    """
    _validate_non_empty_string(property_id, "property_id")

    db = get_db()
    if db is None:
        raise RuntimeError("Firestore is not available")

    docs = _members_ref(db, property_id).stream()
    return [Member.from_dict(doc.to_dict()) for doc in docs]


def find_member(members: list[Member], member_id: Optional[str]) -> Optional[Member]:
    """Return the member with the given id, or None."""
    for member in members:
        if member.member_id == member_id:
            return member
    return None
