# ================================================================
# File     : client.py
# Purpose  : Microsoft Graph API read-only client for Entra (Azure AD)
# Notes    : Read-only: GET + pagination. No destructive ops.
#            - App-only (client secret) or delegated (device code) auth
#            - Proactive refresh if token expires in <5 minutes
#            - Single attempt per request; failures raise GraphError
#            - Context manager: session released once on exit
# ================================================================

import threading
import time
from typing import Dict, Any, List, Optional

import msal
import requests

from core.utils import fncPrintMessage, fncMask

GRAPH_ROOT = "https://graph.microsoft.com/v1.0"
DEFAULT_AUTHORITY = "https://login.microsoftonline.com"
APP_SCOPES = ["https://graph.microsoft.com/.default"]
DELEGATED_SCOPES = ["User.Read.All", "UserAuthenticationMethod.Read.All"]
REQUEST_TIMEOUT = 30


class AuthError(Exception):
    """Session could not be established (credentials, consent, reachability)."""


class GraphError(Exception):
    """A Graph request failed."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


def _prompt(question: str) -> str:
    try:
        answer = input(question).strip()
    except EOFError:
        answer = ""
    if not answer:
        raise AuthError(f"No value supplied for '{question.strip(': ')}'")
    return answer


class GraphClient:
    def __init__(
        self,
        tenant_id: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        authority: str = DEFAULT_AUTHORITY,
    ):
        # Prompt interactively if identifiers are missing; a missing secret
        # means delegated sign-in rather than a prompt
        tenant_id = tenant_id or _prompt("Enter Tenant ID: ")
        client_id = client_id or _prompt("Enter Application (Client) ID: ")

        self.tenant_id = tenant_id
        self.client_id = client_id
        self.delegated = not client_secret
        self.scope = DELEGATED_SCOPES if self.delegated else APP_SCOPES
        self.authority = f"{authority.rstrip('/')}/{tenant_id}"

        fncPrintMessage("Initialising Microsoft Graph (read-only) client...", "info")
        fncPrintMessage(
            f"tenant={tenant_id} client={client_id} secret={fncMask(client_secret) or '(none)'}",
            "debug",
        )

        try:
            if self.delegated:
                self.app = msal.PublicClientApplication(client_id, authority=self.authority)
            else:
                self.app = msal.ConfidentialClientApplication(
                    client_id=client_id,
                    client_credential=client_secret,
                    authority=self.authority,
                )
        except (requests.RequestException, ValueError) as ex:
            raise AuthError(f"Unable to reach identity provider at {self.authority}: {ex}") from ex

        self.http = requests.Session()
        self._closed = False
        self._token_lock = threading.Lock()

        # token/bookkeeping
        self.token: str = ""
        self._token_expires_on: int = 0  # epoch seconds
        self._set_token(self._acquire_token())

        mode = "delegated" if self.delegated else "app-only"
        fncPrintMessage(f"GraphClient initialised (read-only, {mode}).", "success")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # ---------- Token helpers ----------

    def _acquire_token(self) -> Dict[str, Any]:
        """Acquire a token using MSAL. Returns MSAL result dict or raises AuthError."""
        fncPrintMessage("Requesting Microsoft Graph access token...", "debug")
        try:
            if self.delegated:
                result = self._acquire_token_delegated()
            else:
                result = self.app.acquire_token_silent(self.scope, account=None)
                if not result:
                    result = self.app.acquire_token_for_client(scopes=self.scope)
        except requests.RequestException as ex:
            raise AuthError(f"Identity provider unreachable: {ex}") from ex

        if not result or "access_token" not in result:
            result = result or {}
            detail = result.get("error_description") or result.get("error") or "Unknown error"
            raise AuthError(f"MSAL authentication failed: {detail}")
        return result

    def _acquire_token_delegated(self) -> Dict[str, Any]:
        accounts = self.app.get_accounts()
        if accounts:
            result = self.app.acquire_token_silent(self.scope, account=accounts[0])
            if result:
                return result
        flow = self.app.initiate_device_flow(scopes=self.scope)
        if "user_code" not in flow:
            raise AuthError(
                f"Device code sign-in could not start: {flow.get('error')} - {flow.get('error_description')}"
            )
        fncPrintMessage(flow["message"], "warn")
        return self.app.acquire_token_by_device_flow(flow)

    def _set_token(self, msal_result: Dict[str, Any]) -> None:
        """Store token and expiry from MSAL result."""
        self.token = msal_result["access_token"]
        try:
            self._token_expires_on = int(msal_result.get("expires_on") or 0)
        except (TypeError, ValueError):
            self._token_expires_on = 0
        if not self._token_expires_on:
            self._token_expires_on = int(time.time()) + int(msal_result.get("expires_in", 3600))

    def _ensure_fresh_token(self) -> None:
        """Proactively refresh token if it expires in <5 minutes."""
        with self._token_lock:
            now = int(time.time())
            if now >= (self._token_expires_on - 300):
                fncPrintMessage("Refreshing access token (nearing expiry)...", "debug")
                try:
                    self._set_token(self._acquire_token())
                except AuthError as ex:
                    raise GraphError(f"Token refresh failed: {ex}") from ex

    def _auth_headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    # ---------- HTTP handling ----------

    def _handle_response(self, response: requests.Response) -> Dict[str, Any]:
        status = response.status_code

        if status == 200:
            try:
                return response.json()
            except ValueError as ex:
                raise GraphError(f"Graph API returned invalid JSON from {response.url}: {ex}", status=status) from ex

        if status >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            err = (body.get("error") if isinstance(body, dict) else None) or {}
            if not isinstance(err, dict):
                err = {"message": str(err)}
            code = err.get("code") or "UnknownError"
            msg = err.get("message") or response.text
            if status == 429:
                retry_after = response.headers.get("Retry-After", "?")
                msg = f"{msg} (throttled; Retry-After={retry_after}s)"
            fncPrintMessage(f"Graph API Error [{status}] {code} -> {msg}", "debug")
            raise GraphError(f"Graph API request failed with status {status}: {code}: {msg}", status=status)

        try:
            return response.json()
        except ValueError:
            return {"status": status, "text": response.text}

    def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Single HTTP request with proactive token refresh."""
        if self._closed:
            raise GraphError("Graph session has been released")
        self._ensure_fresh_token()
        try:
            resp = self.http.request(
                method, url, headers=self._auth_headers(headers), params=params, timeout=REQUEST_TIMEOUT
            )
        except requests.RequestException as ex:
            raise GraphError(f"Graph API request to {url} failed: {ex}") from ex
        return self._handle_response(resp)

    # ---------- Public API ----------

    def get(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Perform a GET request to a Graph endpoint (single page).
        Use get_all for paginated resources.
        """
        url = f"{GRAPH_ROOT}/{endpoint.strip().lstrip('/')}"
        fncPrintMessage(f"GET {url}", "debug")
        return self._request("GET", url, params=params, headers=headers)

    def get_all(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Retrieve all items from a paginated Graph endpoint.
        Returns a flat list of items (value) for list endpoints.
        Example: client.get_all("users", params={"$select": "id,displayName"})
        """
        url = f"{GRAPH_ROOT}/{endpoint.strip().lstrip('/')}"
        fncPrintMessage(f"GET (all pages) {url}", "debug")

        data = self._request("GET", url, params=params, headers=headers)

        if not isinstance(data, dict):
            return []
        if "value" not in data:
            return [data]

        items: List[Dict[str, Any]] = list(data.get("value") or [])
        next_link = data.get("@odata.nextLink")

        # nextLink already carries the encoded query
        while next_link:
            fncPrintMessage(f"Following nextLink -> {next_link}", "debug")
            page = self._request("GET", next_link, headers=headers)
            if not isinstance(page, dict):
                break
            items.extend(page.get("value") or [])
            next_link = page.get("@odata.nextLink")

        return items

    # ---------- Lifecycle ----------

    def close(self) -> None:
        """Release the session once. Best-effort: failures are warned, never raised."""
        if self._closed:
            return
        self._closed = True
        self.token = ""
        try:
            if self.delegated:
                for account in self.app.get_accounts():
                    self.app.remove_account(account)
            self.http.close()
            fncPrintMessage("Graph session released.", "debug")
        except Exception as ex:  # best-effort
            fncPrintMessage(f"Failed to release Graph session cleanly: {ex}", "warn")
