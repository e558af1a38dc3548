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

"""Constants for the observation module."""

# Observation states
# created -> capturing -> captured -> decoded, failed is reachable from any state
STATUS_CREATED = "created"
STATUS_CAPTURING = "capturing"
STATUS_CAPTURED = "captured"
STATUS_DECODED = "decoded"
STATUS_FAILED = "failed"

# All valid observation statuses
VALID_STATUSES = (
    STATUS_CREATED,
    STATUS_CAPTURING,
    STATUS_CAPTURED,
    STATUS_DECODED,
    STATUS_FAILED,
)

# Artifact channel tags used with the result store
CHANNEL_IMAGE = "a"
CHANNEL_DATA = "data"

# Seconds stop() waits for the capture thread to finish its teardown
CAPTURE_JOIN_TIMEOUT = 30.0

# Pass search horizon and minimum elevation used when planning
PASS_SEARCH_HOURS = 24.0
DEFAULT_MIN_ELEVATION = 8.0

# Grace period for start/stop jobs that fire late
MISFIRE_GRACE_SECONDS = 60
