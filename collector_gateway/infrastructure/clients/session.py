"""Identity service HTTP client resolving session tokens to (user, role)"""

import httpx
from collector_gateway.domain.models import Role, SessionIdentity
from collector_gateway.domain.exceptions import Unauthenticated
from collector_gateway.config import settings


class SessionClient:
    """Client for the external authentication provider"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url or settings.identity_api_base
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    async def resolve(self, token: str) -> SessionIdentity:
        """
        Resolve a bearer token to the caller's identity and role.

        The role always comes from the identity service, never from the
        incoming request.

        Raises:
            Unauthenticated: On missing token, timeout, HTTP errors, or invalid response
        """
        if not token:
            raise Unauthenticated("Missing session token")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.get(
                    f"{self.base_url}/auth/v1/user",
                    headers={"Authorization": f"Bearer {token}"},
                )
                response.raise_for_status()
                data = response.json()

                role = Role(data["role"])
                return SessionIdentity(user_id=str(data["id"]), role=role.value)

            except httpx.TimeoutException as e:
                raise Unauthenticated(f"Identity service timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise Unauthenticated(f"Identity service rejected token: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise Unauthenticated(f"Identity service unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                raise Unauthenticated(f"Invalid identity payload: {e}") from e
