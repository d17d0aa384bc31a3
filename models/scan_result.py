"""SQLAlchemy models for crawled sites and the user-agents their robots.txt disallows."""

from __future__ import annotations

from advanced_alchemy.base import BigIntBase
from sqlalchemy import BigInteger, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

MAX_USER_AGENT_LENGTH = 512


class Site(BigIntBase):
    """A robots.txt location that was fetched successfully.

    ``url`` is the final URL after redirects and is unique; ``rank`` is
    the popularity rank from the origin list, informational only.
    """

    __tablename__ = "sites"

    url: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    rank: Mapped[int | None] = mapped_column(Integer, nullable=True)

    blocked_agents: Mapped[list[BlockedAgent]] = relationship(
        back_populates="site",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )


class BlockedAgent(BigIntBase):
    """One user-agent named with at least one Disallow rule for a site."""

    __tablename__ = "blocked_agents"
    __table_args__ = (
        Index("ix_blocked_agents_user_agent", "user_agent"),
        Index("ix_blocked_agents_site_id", "site_id"),
    )

    site_id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        ForeignKey("sites.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_agent: Mapped[str] = mapped_column(String(MAX_USER_AGENT_LENGTH), nullable=False)

    site: Mapped[Site] = relationship(back_populates="blocked_agents")
