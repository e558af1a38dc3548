"""
No-IP dynamic DNS updater.

Keeps the configured hostname pointing at the station's current external IP.
Protocol reference: https://www.noip.com/integrate/response
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

import requests

from common.configuration import Configuration
from common.exceptions import ConfigurationError
from tasks.resilient import TaskState

logger = logging.getLogger("ddns")

NOIP_UPDATE_URL = "https://dynupdate.no-ip.com/nic/update"
EXTERNAL_IP_URL = "https://checkip.amazonaws.com"
USER_AGENT = "ground-station-observer/0.1 ddns-updater"
REQUEST_TIMEOUT = 10
RETRY_TIMEOUT = timedelta(minutes=30)

SUCCESS_PREFIXES = ("good", "nochg")
FATAL_RESPONSES = {"nohost", "badauth", "badagent", "!donator", "abuse"}
SERVER_ERROR_RESPONSE = "911"


def fetch_external_ip() -> Optional[str]:
    """Ask a plain-text echo service for the station's external IP."""
    reply = requests.get(EXTERNAL_IP_URL, timeout=REQUEST_TIMEOUT)
    if reply.status_code != 200:
        logger.warning(f"Unable to determine external IP, response code: {reply.status_code}")
        return None
    ip = reply.text.strip()
    return ip or None


def get_and_validate(config: Configuration, name: str) -> str:
    value = config.get_property(name)
    if value is None or len(str(value).strip()) == 0:
        raise ConfigurationError(f"{name} cannot be empty")
    return str(value)


class NoIPUpdater:
    """
    Work function for the dynamic DNS resilient task.

    Called as ``updater(state, now)`` and returns the next TaskState.
    """

    def __init__(
        self,
        config: Configuration,
        external_ip_provider: Callable[[], Optional[str]] = fetch_external_ip,
    ):
        self.config = config
        self.username = get_and_validate(config, "ddns.noip.username")
        self.password = get_and_validate(config, "ddns.noip.password")
        self.domain_name = get_and_validate(config, "ddns.noip.domain")
        self.current_external_ip = config.get_property("ddns.ip")
        self.external_ip_provider = external_ip_provider

    def __call__(self, state: TaskState, now: datetime) -> TaskState:
        external_ip = self.external_ip_provider()
        if external_ip is None:
            return state
        if self.current_external_ip is not None and self.current_external_ip == external_ip:
            return state

        reply = requests.get(
            NOIP_UPDATE_URL,
            params={"hostname": self.domain_name},
            auth=(self.username, self.password),
            headers={"User-Agent": USER_AGENT},
            timeout=REQUEST_TIMEOUT,
        )
        if reply.status_code != 200:
            logger.error(
                f"Unable to update ddns. response code: {reply.status_code}. body: {reply.text}"
            )
            return state

        lines = reply.text.strip().splitlines()
        response = lines[0].strip() if lines else ""
        return self.handle_response(response, state, now)

    def handle_response(self, response: str, state: TaskState, now: datetime) -> TaskState:
        if response.startswith(SUCCESS_PREFIXES):
            index = response.find(" ")
            if index != -1:
                self.current_external_ip = response[index + 1 :].strip()
                self.config.set_property("ddns.ip", self.current_external_ip)
                self.config.update()
                logger.info(f"ddns record for {self.domain_name} is {self.current_external_ip}")
            return state

        if response in FATAL_RESPONSES:
            logger.error(f"Fatal error detected: {response}. Please check ddns settings")
            return state.latch_fatal()

        if response == SERVER_ERROR_RESPONSE:
            logger.error(
                "ddns provider returned internal server error. "
                f"Will retry update after {int(RETRY_TIMEOUT.total_seconds() * 1000)} millis"
            )
            return state.backoff(now, RETRY_TIMEOUT)

        logger.debug(f"Unknown response code: {response}")
        return state
