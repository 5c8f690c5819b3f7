"""Declarative base shared by every ChatCommerce table."""

import uuid

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class IdGeneratorMixin:
    """Mixin providing a class method to generate unique IDs for database entities."""

    @classmethod
    def generate_id(cls) -> str:
        return str(uuid.uuid4())
