"""
Resolve the admin key used to authenticate against the search service.
"""

from abc import ABC, abstractmethod
from typing import Optional

import requests
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import DefaultAzureCredential

from .errors import CredentialError


MANAGEMENT_SCOPE = "https://management.azure.com/.default"
MANAGEMENT_BASE_URL = "https://management.azure.com"
MANAGEMENT_API_VERSION = "2023-11-01"


class CredentialProvider(ABC):
    @abstractmethod
    def get_admin_key(self, resource_group: str, service_name: str) -> str:
        """Return an admin key for the service or raise CredentialError."""
        pass


class StaticKeyProvider(CredentialProvider):
    """Hands out a key that was supplied up front (e.g. API_KEY in .env)."""

    def __init__(self, api_key: Optional[str]):
        self.api_key = api_key

    def get_admin_key(self, resource_group: str, service_name: str) -> str:
        if not self.api_key:
            raise CredentialError(f"No admin key configured for search service '{service_name}'")
        return self.api_key


class ManagementKeyProvider(CredentialProvider):
    """
    Looks up the primary admin key through the Azure management plane.

    Authenticates with DefaultAzureCredential, so an `az login` session, a
    managed identity or service principal environment variables all work.
    Every call performs a fresh lookup.
    """

    def __init__(self, subscription_id: Optional[str], credential=None, timeout: Optional[float] = None):
        self.subscription_id = subscription_id
        self.credential = credential
        self.timeout = timeout

    def admin_keys_url(self, resource_group: str, service_name: str) -> str:
        return (
            f"{MANAGEMENT_BASE_URL}/subscriptions/{self.subscription_id}"
            f"/resourceGroups/{resource_group}"
            f"/providers/Microsoft.Search/searchServices/{service_name}"
            f"/listAdminKeys?api-version={MANAGEMENT_API_VERSION}"
        )

    def get_management_headers(self) -> dict:
        credential = self.credential or DefaultAzureCredential()
        try:
            token = credential.get_token(MANAGEMENT_SCOPE)
        except ClientAuthenticationError as e:
            raise CredentialError(f"Could not acquire a management token: {e}") from e

        return {
            "Authorization": f"Bearer {token.token}",
            "Content-Type": "application/json",
        }

    def get_admin_key(self, resource_group: str, service_name: str) -> str:
        if not self.subscription_id:
            raise CredentialError("AZURE_SUBSCRIPTION_ID is required to look up the admin key")

        headers = self.get_management_headers()
        url = self.admin_keys_url(resource_group, service_name)

        try:
            response = requests.post(url, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else "N/A"
            raise CredentialError(
                f"Failed to list admin keys for '{service_name}' in '{resource_group}' ({status})"
            ) from exc
        except requests.exceptions.RequestException as exc:
            raise CredentialError(f"Failed to reach the management API: {exc}") from exc

        try:
            key = response.json().get("primaryKey")
        except ValueError as exc:
            raise CredentialError(f"Unreadable admin key response for '{service_name}'") from exc
        if not key:
            raise CredentialError(f"No primary admin key returned for '{service_name}'")
        return key
