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


import argparse

parser = argparse.ArgumentParser(
    description="Start the unattended ground station observer with custom arguments."
)
parser.add_argument(
    "--config",
    type=str,
    default="data/config.yaml",
    help="Path to the key-value configuration file",
)
parser.add_argument(
    "--db", type=str, default="data/db/observations.db", help="Path to the database file"
)
parser.add_argument(
    "--data-dir",
    type=str,
    default="data",
    help="Root directory for captured and decoded artifacts",
)
parser.add_argument(
    "--catalog",
    type=str,
    default="data/satellites.yaml",
    help="Path to the satellite catalog",
)
parser.add_argument(
    "--log-level",
    type=str,
    default="INFO",
    choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    help="Set the logging level",
)
parser.add_argument(
    "--log-config", type=str, default="logconfig.yaml", help="Path to the logger configuration file"
)
parser.add_argument(
    "--plan-interval",
    type=int,
    default=60,
    help="Seconds between pass planning runs",
)
parser.add_argument(
    "--ddns-interval",
    type=int,
    default=300,
    help="Seconds between dynamic DNS checks",
)


def parse_arguments(argv=None) -> argparse.Namespace:
    """Parse command line arguments. ``argv`` defaults to ``sys.argv[1:]``."""
    return parser.parse_args(argv)
