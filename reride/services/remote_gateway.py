# reride/services/remote_gateway.py
"""
Remote Data Gateway: thin async HTTP client over the collection endpoints
(/vehicles, /users, /vehicles?type=data).

Every failure (network, non-2xx, malformed body) surfaces as GatewayError.
Only DataService decides whether a GatewayError means "fall back to cache".
No timeout or cancellation of its own: httpx defaults apply.
"""

from typing import Any, Callable, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from reride.config import settings
from reride.schemas.taxonomy import VehicleTaxonomy
from reride.schemas.user import AuthResult, UserRecord
from reride.schemas.vehicle import DeleteResult, VehicleRecord
from reride.utils.json_parser import extract_error_message, safe_parse_json
from reride.utils.logger import get_logger

logger = get_logger(__name__)

_vehicle_list = TypeAdapter(list[VehicleRecord])
_user_list = TypeAdapter(list[UserRecord])


class GatewayError(Exception):
    """Single transport failure type. `payload` is the decoded error body, if any."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


class RemoteGateway:
    def __init__(
        self,
        base_url: Optional[str] = None,
        auth_headers: Optional[Callable[[], dict[str, str]]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self._auth_headers = auth_headers or (lambda: {})
        self._transport = transport

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[dict[str, str]] = None,
    ) -> Any:
        headers = {"Content-Type": "application/json", **self._auth_headers()}
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.request(method, url, json=json, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise GatewayError(f"{method} {path} failed: {e}") from e

        if not response.is_success:
            payload = safe_parse_json(response.content)
            message = extract_error_message(payload) or (
                f"API Error: {response.status_code} - {response.reason_phrase}"
            )
            logger.debug(f"{method} {path} → {response.status_code}: {message}")
            raise GatewayError(message, status_code=response.status_code, payload=payload)

        data = safe_parse_json(response.content)
        if data is None:
            raise GatewayError(f"Malformed response body from {method} {path}", status_code=response.status_code)
        return data

    # ── Typed endpoints ───────────────────────────────────────────────────
    async def list_vehicles(self) -> list[VehicleRecord]:
        return self._parse(_vehicle_list, await self.request("GET", "/vehicles"), "GET /vehicles")

    async def create_vehicle(self, vehicle: VehicleRecord) -> VehicleRecord:
        data = await self.request("POST", "/vehicles", json=vehicle.to_wire())
        return self._parse(VehicleRecord, data, "POST /vehicles")

    async def update_vehicle(self, vehicle: VehicleRecord) -> VehicleRecord:
        data = await self.request("PUT", "/vehicles", json=vehicle.to_wire())
        return self._parse(VehicleRecord, data, "PUT /vehicles")

    async def delete_vehicle(self, vehicle_id: int) -> DeleteResult:
        data = await self.request("DELETE", "/vehicles", json={"id": vehicle_id})
        return self._parse(DeleteResult, data, "DELETE /vehicles")

    async def list_users(self) -> list[UserRecord]:
        return self._parse(_user_list, await self.request("GET", "/users"), "GET /users")

    async def login(self, credentials: dict[str, Any]) -> AuthResult:
        data = await self.request("POST", "/users", json={"action": "login", **credentials})
        return self._parse(AuthResult, data, "POST /users (login)")

    async def register(self, credentials: dict[str, Any]) -> AuthResult:
        data = await self.request("POST", "/users", json={"action": "register", **credentials})
        return self._parse(AuthResult, data, "POST /users (register)")

    async def get_vehicle_data(self) -> VehicleTaxonomy:
        data = await self.request("GET", "/vehicles", params={"type": "data"})
        return self._parse(VehicleTaxonomy, data, "GET /vehicles?type=data")

    async def save_vehicle_data(self, taxonomy: VehicleTaxonomy) -> Any:
        return await self.request("POST", "/vehicles", json=taxonomy.to_wire(), params={"type": "data"})

    @staticmethod
    def _parse(schema, data: Any, what: str):
        """A body that does not match the record shape is a malformed body."""
        try:
            if isinstance(schema, TypeAdapter):
                return schema.validate_python(data)
            return schema.model_validate(data)
        except ValidationError as e:
            raise GatewayError(f"Malformed response body from {what}: {e.error_count()} error(s)") from e
