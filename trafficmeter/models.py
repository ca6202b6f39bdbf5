"""
SQLAlchemy ORM models.

We only need a single append-only table:

- UsageRecord: one row per (tick, traffic source) with the bytes moved
  during that interval
"""

from sqlalchemy import BigInteger, Column, Integer, String

from trafficmeter.database import Base


class UsageRecord(Base):
    """
    Bytes downloaded/uploaded by one source during one poll interval.

    Rows are never updated; retention trimming deletes them in bulk.
    """

    __tablename__ = "usage"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # UTC epoch seconds at which the interval was logged
    timestamp = Column(Integer, index=True, nullable=False)

    # Interface name, or the aggregate label
    interface = Column(String, nullable=False)

    bytes_down = Column(BigInteger, nullable=False)
    bytes_up = Column(BigInteger, nullable=False)
