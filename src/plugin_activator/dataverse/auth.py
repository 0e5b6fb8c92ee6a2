# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/plugin_activator/dataverse/auth.py

from __future__ import annotations

import logging
import re
import time
from typing import Optional

import requests

from .errors import DataverseAuthError

log = logging.getLogger("plugin_activator")

LOGIN_BASE_URL = "https://login.microsoftonline.com"
API_PATH = "/api/data/v9.2"

# refresh this many seconds before the token actually expires
EXPIRY_MARGIN_SECONDS = 60

_AUTHORIZATION_URI = re.compile(r'authorization_uri="?([^",\s]+)"?', re.IGNORECASE)


def discover_authority(session: requests.Session, url: str, *, timeout: int = 30) -> str:
    """
    Find the Entra authority for an environment.

    An unauthenticated request to the Web API answers 401 with a header like
    ``Bearer authorization_uri=https://login.microsoftonline.com/<tenant>/oauth2/authorize``.
    """
    challenge_url = f"{url.rstrip('/')}{API_PATH}/"
    try:
        r = session.get(challenge_url, timeout=timeout)
    except requests.RequestException as exc:
        raise DataverseAuthError(f"Could not reach {challenge_url}: {exc}") from exc

    header = r.headers.get("WWW-Authenticate", "")
    m = _AUTHORIZATION_URI.search(header)
    if not m:
        raise DataverseAuthError(
            f"Could not discover authority for {url} ({r.status_code})",
            status=r.status_code,
            body=r.text,
        )
    return m.group(1).split("/oauth2/")[0].rstrip("/")


class ClientSecretAuth:
    """
    OAuth2 client-credentials token provider for one Dataverse environment.

    The authority comes from tenant_id when given, otherwise it is
    discovered from the environment on first use.
    """

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        resource: str,
        session: requests.Session,
        tenant_id: Optional[str] = None,
        timeout: int = 30,
    ):
        self.client_id = client_id
        self._client_secret = client_secret
        self.resource = resource.rstrip("/")
        self.session = session
        self.tenant_id = tenant_id
        self.timeout = timeout

        self._authority: Optional[str] = None
        self._token: Optional[str] = None
        self._expires_at: float = 0.0

    @property
    def authority(self) -> str:
        if self._authority is None:
            if self.tenant_id:
                self._authority = f"{LOGIN_BASE_URL}/{self.tenant_id}"
            else:
                self._authority = discover_authority(self.session, self.resource, timeout=self.timeout)
            log.debug("Using authority %s", self._authority)
        return self._authority

    def token(self) -> str:
        if self._token and time.monotonic() < self._expires_at - EXPIRY_MARGIN_SECONDS:
            return self._token
        self._acquire()
        return self._token

    def _acquire(self) -> None:
        token_url = f"{self.authority}/oauth2/v2.0/token"
        data = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self._client_secret,
            "scope": f"{self.resource}/.default",
        }

        try:
            r = self.session.post(token_url, data=data, timeout=self.timeout)
        except requests.RequestException as exc:
            raise DataverseAuthError(f"Token request to {token_url} failed: {exc}") from exc

        if r.status_code != 200:
            raise DataverseAuthError(
                f"Token request failed: {r.status_code} {r.text}",
                status=r.status_code,
                body=r.text,
            )

        obj = r.json()
        token = obj.get("access_token")
        if not token:
            raise DataverseAuthError("Token response is missing access_token", status=r.status_code)

        self._token = token
        self._expires_at = time.monotonic() + int(obj.get("expires_in", 3600))
