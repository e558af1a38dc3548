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


import logging
import logging.config
import os

import yaml


def get_logger_config(args):
    """
    Loads a logging configuration.

    This function retrieves the logging configuration in YAML format
    from the file path provided in the arguments and converts it to a Python
    dictionary suitable for ``logging.config.dictConfig``.

    :param args: Parsed arguments containing the file path to the logging configuration.
    :type args: argparse.Namespace
    :return: Python dictionary with logging configuration, or None if the file does not exist.
    :rtype: dict | None
    :raises yaml.YAMLError: If the YAML configuration file cannot be parsed due to invalid syntax.
    """
    if not os.path.exists(args.log_config):
        return None

    with open(args.log_config, "r") as file:
        return yaml.safe_load(file)


def get_logger(args):
    """
    Obtains a logger instance configured according to the given logging configuration.

    The YAML configuration is applied with ``dictConfig``. When no configuration
    file is present a plain console configuration is installed instead so the
    observer still logs on a fresh install.

    :param args: The command-line arguments containing the path to the logging
                 configuration file (YAML format) and the log level.
    :type args: argparse.Namespace
    :return: A logger instance named "ground-station".
    :rtype: logging.Logger
    """
    logging_config = get_logger_config(args)

    if logging_config:
        logging.config.dictConfig(logging_config)
    else:
        logging.basicConfig(
            level=args.log_level,
            format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
        )

    log = logging.getLogger("ground-station")
    log.setLevel(args.log_level)

    # Suppress apscheduler internal INFO logs (only show warnings and errors)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    return log
