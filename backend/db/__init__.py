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


import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from db.models import Base


def create_db_engine(db_path: str):
    """Create the SQLite engine for the result store, creating the directory if needed."""
    if db_path != ":memory:":
        directory = os.path.dirname(os.path.abspath(db_path))
        os.makedirs(directory, exist_ok=True)

    return create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={
            "check_same_thread": False,
        },
    )


def init_db(engine):
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(engine)


def create_session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)
