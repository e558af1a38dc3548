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


class ConfigurationError(Exception):

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self):
        base_str = f"ConfigurationError: {self.message}"
        return base_str


class ProcessSpawnError(Exception):

    def __init__(self, message: str, command=None):
        super().__init__(message)
        self.message = message
        self.command = command

    def __str__(self):
        base_str = f"ProcessSpawnError: {self.message}"
        return base_str


class UnknownDecoderModeError(Exception):

    def __init__(self, mode: str):
        super().__init__(mode)
        self.mode = mode
        self.message = f"no decoder registered for mode '{mode}'"

    def __str__(self):
        base_str = f"UnknownDecoderModeError: {self.message}"
        return base_str
