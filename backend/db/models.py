# Copyright (c) 2025 Efstratios Goudelis
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.


from datetime import UTC, datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKeyConstraint, Integer, String, TypeDecorator
from sqlalchemy.orm import declarative_base

# Creates a base class for declarative models using SQLAlchemy.
Base = declarative_base()


class AwareDateTime(TypeDecorator):
    """
    A type that ensures timezone-aware datetimes by
    attaching UTC if the datetime is naive.
    """

    impl = DateTime(timezone=False)  # SQLite doesn't honor tz anyway
    cache_ok = True

    def process_result_value(self, value, dialect):
        """
        When reading from DB, if it's naive, attach UTC.
        """
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def process_bind_param(self, value, dialect):
        """
        When writing to DB, store every datetime in UTC.
        """
        if value is None:
            return value
        if value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)


def _now():
    return datetime.now(UTC)


class Observations(Base):
    __tablename__ = "observations"
    satellite_id = Column(String, primary_key=True, nullable=False)
    observation_id = Column(String, primary_key=True, nullable=False)
    raw_path = Column(String, nullable=True)
    start = Column(AwareDateTime, nullable=True)
    end = Column(AwareDateTime, nullable=True)
    decoded_count = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, default="created")
    added = Column(AwareDateTime, nullable=False, default=_now)
    updated = Column(AwareDateTime, nullable=False, default=_now, onupdate=_now)


class ObservationArtifacts(Base):
    __tablename__ = "observation_artifacts"
    satellite_id = Column(String, primary_key=True, nullable=False)
    observation_id = Column(String, primary_key=True, nullable=False)
    channel = Column(String, primary_key=True, nullable=False)
    path = Column(String, nullable=False)
    added = Column(AwareDateTime, nullable=False, default=_now)

    __table_args__ = (
        ForeignKeyConstraint(
            ["satellite_id", "observation_id"],
            ["observations.satellite_id", "observations.observation_id"],
            ondelete="CASCADE",
        ),
    )
