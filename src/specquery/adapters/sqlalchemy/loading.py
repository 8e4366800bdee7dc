"""Translate include step chains into chained ORM loader options."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import joinedload, selectinload

from ...includes import IncludeKind, LinkShape
from .compiler import mapped_attribute

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.sql.base import ExecutableOption

    from ...includes import IncludeStep


def build_loader_option(
    chain: Sequence[IncludeStep], *, split_fetch: bool = False
) -> ExecutableOption:
    """
    Build one loader option for a root-to-leaf chain.

    Collections load with ``selectinload`` under split fetch and with
    ``joinedload`` otherwise; references always use ``joinedload``.
    """
    if not chain or chain[0].kind is not IncludeKind.INCLUDE:
        raise ValueError("An include chain must start with an INCLUDE step")

    option: Any = None
    for step in chain:
        attribute = mapped_attribute(step.owner_type, step.name)
        use_select = split_fetch and step.shape is LinkShape.COLLECTION
        if option is None:
            option = selectinload(attribute) if use_select else joinedload(attribute)
        elif use_select:
            option = option.selectinload(attribute)
        else:
            option = option.joinedload(attribute)
    return option
