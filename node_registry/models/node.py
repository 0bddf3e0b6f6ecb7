from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from ..database.base import Base


class Node(Base):
    """
    Node Registry Model.
    One row per tracked machine, keyed by nodeID. Column names match the
    JSON field names used on the wire.
    """
    __tablename__ = "nodes"

    node_id: Mapped[str] = mapped_column("nodeID", String(64), primary_key=True)
    # Nullable as in the existing table DDL; writes always fill every column
    node_ip: Mapped[Optional[str]] = mapped_column("nodeIP", String(64), nullable=True)
    node_kernel: Mapped[Optional[str]] = mapped_column("nodeKernel", String(128), nullable=True)
    node_os: Mapped[Optional[str]] = mapped_column("nodeOS", String(128), nullable=True)
    node_px_version: Mapped[Optional[str]] = mapped_column("nodePxVersion", String(64), nullable=True)
