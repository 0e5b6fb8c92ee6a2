# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/plugin_activator/dataverse/client.py

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

import requests

from .auth import API_PATH, ClientSecretAuth
from .connection_string import parse_connection_string
from .errors import DataverseError
from .query import QueryExpression

log = logging.getLogger("plugin_activator")

MAX_PAGE_SIZE = 5000


class DataverseClient:
    """
    Minimal Dataverse Web API client:
      - client-credentials login
      - RetrieveMultiple for a QueryExpression (all pages)
      - state/status update for a single record

    Endpoints used:
    - /api/data/v9.2/WhoAmI
    - /api/data/v9.2/EntityDefinitions(LogicalName='<name>')
    - /api/data/v9.2/<entityset>
    """

    def __init__(
        self,
        *,
        url: str,
        client_id: str,
        client_secret: str,
        tenant_id: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
    ):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.auth = ClientSecretAuth(
            client_id=client_id,
            client_secret=client_secret,
            resource=self.url,
            tenant_id=tenant_id,
            session=self.session,
            timeout=timeout,
        )
        self._entity_sets: Dict[str, str] = {}

    @classmethod
    def from_connection_string(
        cls,
        value: str,
        *,
        session: Optional[requests.Session] = None,
    ) -> "DataverseClient":
        parts = parse_connection_string(value)

        auth_type = parts.get("authtype", "")
        if auth_type.lower() != "clientsecret":
            raise DataverseError(f"Unsupported AuthType {auth_type!r}; only ClientSecret is supported")

        missing = [k for k in ("clientid", "clientsecret", "url") if not parts.get(k)]
        if missing:
            raise DataverseError(f"Connection string is missing: {', '.join(missing)}")

        return cls(
            url=parts["url"],
            client_id=parts["clientid"],
            client_secret=parts["clientsecret"],
            tenant_id=parts.get("tenantid") or None,
            session=session,
        )

    # -----------------------
    # Session lifecycle
    # -----------------------
    def connect(self) -> Dict[str, Any]:
        """Authenticate and verify the connection with WhoAmI."""
        who = self._get_json(self._api_url("WhoAmI"))
        log.debug(
            "Connected to %s as user=%s org=%s",
            self.url,
            who.get("UserId"),
            who.get("OrganizationId"),
        )
        return who

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "DataverseClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # -----------------------
    # HTTP helpers
    # -----------------------
    def _api_url(self, path: str) -> str:
        return f"{self.url}{API_PATH}/{path.lstrip('/')}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.auth.token()}",
            "Accept": "application/json",
            "Content-Type": "application/json; charset=utf-8",
            "OData-MaxVersion": "4.0",
            "OData-Version": "4.0",
        }

    def _get_json(
        self,
        url: str,
        *,
        params: Optional[Dict[str, str]] = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        headers = self._headers()
        if extra_headers:
            headers.update(extra_headers)

        r = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        if not 200 <= r.status_code < 300:
            raise DataverseError(
                f"GET {url} failed ({r.status_code}): {r.text}",
                status=r.status_code,
                body=r.text,
            )
        return r.json()

    # -----------------------
    # Metadata
    # -----------------------
    def entity_set_name(self, logical_name: str) -> str:
        """Resolve (and cache) the Web API collection name of an entity."""
        if logical_name not in self._entity_sets:
            data = self._get_json(
                self._api_url(f"EntityDefinitions(LogicalName='{logical_name}')"),
                params={"$select": "EntitySetName"},
            )
            name = data.get("EntitySetName")
            if not name:
                raise DataverseError(f"No entity set found for {logical_name!r}")
            self._entity_sets[logical_name] = name
        return self._entity_sets[logical_name]

    # -----------------------
    # Data operations
    # -----------------------
    def retrieve_multiple(self, query: QueryExpression) -> List[Dict[str, Any]]:
        """Run *query* and return every matching row, following paging links."""
        url: Optional[str] = self._api_url(self.entity_set_name(query.entity_name))
        params: Optional[Dict[str, str]] = query.to_params()
        prefer = {"Prefer": f"odata.maxpagesize={MAX_PAGE_SIZE}"}

        rows: List[Dict[str, Any]] = []
        while url:
            data = self._get_json(url, params=params, extra_headers=prefer)
            rows.extend(data.get("value", []))
            # nextLink already carries the query options
            url = data.get("@odata.nextLink")
            params = None

        log.debug("Retrieved %d %s rows", len(rows), query.entity_name)
        return rows

    def update_state_and_status(
        self,
        entity_name: str,
        record_id: UUID,
        state_code: int,
        status_code: int,
    ) -> bool:
        """
        Set statecode/statuscode on one record.

        Returns True when the update was accepted, False otherwise.
        """
        # update only; without If-Match a PATCH on a missing id creates the row
        headers = self._headers()
        headers["If-Match"] = "*"

        try:
            url = self._api_url(f"{self.entity_set_name(entity_name)}({record_id})")
            r = self.session.patch(
                url,
                json={"statecode": state_code, "statuscode": status_code},
                headers=headers,
                timeout=self.timeout,
            )
        except (requests.RequestException, DataverseError) as exc:
            log.debug("Update of %s %s failed: %s", entity_name, record_id, exc)
            return False

        if 200 <= r.status_code < 300:
            return True

        log.debug("PATCH %s failed (%s): %s", url, r.status_code, r.text)
        return False
