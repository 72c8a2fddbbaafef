"""Validation of the Host header, protecting local servers against DNS rebinding."""

from __future__ import annotations

import logging

from awserver.config import AWConfig

log = logging.getLogger(__name__)

VALID_HOSTS = ("127.0.0.1", "localhost")
INVALID_HOST_MESSAGE = "Host header is invalid"


def host_is_valid(host_header: str | None) -> bool:
    """Return whether a Host header names the local machine; the port is ignored."""
    if host_header is None:
        log.info("Missing 'Host' header, denying request")
        return False
    host = host_header.split(":", 1)[0]
    if host not in VALID_HOSTS:
        log.info("Host header '%s' not allowed, denying request", host_header)
        return False
    return True


class HostCheck:
    """Host header policy; only enforced when the server binds a local address."""

    def __init__(self, config: AWConfig) -> None:
        self.validate = config.address in VALID_HOSTS
        if not self.validate:
            log.warning("Host header validation is turned off, this is a security risk")

    def is_allowed(self, host_header: str | None) -> bool:
        """Return whether a request with this Host header may proceed."""
        if not self.validate:
            return True
        return host_is_valid(host_header)