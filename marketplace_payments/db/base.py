from enum import Enum
from typing import Type
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """ this is the base class for all models """


def str_enum(enum_cls: Type[Enum], name: str) -> SAEnum:
    """
    Enum column type that stores the enum values ("pending") rather than
    the member names ("PENDING").
    """
    return SAEnum(enum_cls, name=name, values_callable=lambda members: [m.value for m in members])
