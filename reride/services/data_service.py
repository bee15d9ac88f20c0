# reride/services/data_service.py
"""
Cache-aside synchronizer: the single entry point for vehicle, user and
taxonomy data, working the same whether or not the backend is reachable.

Modes (fixed for the lifetime of the instance):
  remote-preferred  call the RemoteGateway first, mirror the result into the
                    LocalStore, fall back to the LocalStore on any GatewayError
  local-only        never touch the network

Reads seed the LocalStore from the bundled defaults when a key is missing.
Writes go remote-then-local; a remote failure degrades to a local-only write
and marks the collection for sync_when_online(). There is no replay queue:
such writes never reach the server on their own.

Every LocalStore key is owned by this module. Other services use the typed
accessors at the bottom of DataService, never raw keys.
"""

import time
from operator import attrgetter
from typing import Any, Callable, Optional, Union

import httpx
from pydantic import TypeAdapter, ValidationError

from reride.config import settings
from reride.schemas.errors import validate_record
from reride.schemas.saved_search import BuyerActivity, SavedSearch
from reride.schemas.taxonomy import VehicleTaxonomy
from reride.schemas.user import AuthResult, LoginCredentials, RegistrationRequest, UserRecord
from reride.schemas.vehicle import DeleteResult, VehicleRecord
from reride.services.fallback_data import (
    DEFAULT_CREDENTIALS,
    default_users,
    default_vehicle_data,
    default_vehicles,
)
from reride.services.local_store import LocalStore, LocalStoreError, QuotaExceededError
from reride.services.remote_gateway import GatewayError, RemoteGateway
from reride.utils.json_parser import extract_error_message
from reride.utils.logger import get_logger
from reride.utils.passwords import hash_password, verify_password

logger = get_logger(__name__)

# ── Local Store keys ──────────────────────────────────────────────────────────
STORE_PREFIX = "reride:"
KEY_CURRENT_USER = STORE_PREFIX + "current_user"
KEY_ACCESS_TOKEN = STORE_PREFIX + "access_token"
KEY_CREDENTIALS = STORE_PREFIX + "credentials"
KEY_VEHICLES = STORE_PREFIX + "vehicles"
KEY_USERS = STORE_PREFIX + "users"
KEY_VEHICLE_DATA = STORE_PREFIX + "vehicle_data"
KEY_WISHLIST = STORE_PREFIX + "wishlist"
KEY_COMPARISON = STORE_PREFIX + "comparison"
KEY_PRICE_HISTORY = STORE_PREFIX + "price_history"
KEY_PENDING_SYNC = STORE_PREFIX + "pending_sync"

# Dropped on quota pruning. Everything else is session, client-owned or a sync mark.
PRUNABLE_KEYS = {KEY_VEHICLES, KEY_USERS, KEY_VEHICLE_DATA}
PRUNABLE_PREFIXES = (STORE_PREFIX + "phone_views:", STORE_PREFIX + "shares:")
_COLLECTION_KEYS = {"vehicles": KEY_VEHICLES, "users": KEY_USERS}

COMPARISON_LIMIT = 4
DUPLICATE_EMAIL_REASON = "An account with this email already exists."
INVALID_CREDENTIALS_REASON = "Invalid credentials."

# Status codes whose {success: false} body is a business answer, not a transport fault
_REJECTION_STATUSES = {400, 401, 403, 409}

_vehicle_list = TypeAdapter(list[VehicleRecord])
_user_list = TypeAdapter(list[UserRecord])
_search_list = TypeAdapter(list[SavedSearch])
_taxonomy = TypeAdapter(VehicleTaxonomy)
_activity = TypeAdapter(BuyerActivity)


def _phone_views_key(vehicle_id: int) -> str:
    return f"{STORE_PREFIX}phone_views:{vehicle_id}"


def _shares_key(vehicle_id: int) -> str:
    return f"{STORE_PREFIX}shares:{vehicle_id}"


def _saved_searches_key(user_id: str) -> str:
    return f"{STORE_PREFIX}saved_searches:{user_id}"


def _buyer_activity_key(user_id: str) -> str:
    return f"{STORE_PREFIX}buyer_activity:{user_id}"


def merge_records(remote: list, local: list, key: Callable[[Any], Any]) -> tuple[list, int]:
    """Remote wins on shared keys; local-only records are appended. Returns (merged, kept_local)."""
    remote_keys = {key(r) for r in remote}
    local_only = [r for r in local if key(r) not in remote_keys]
    return list(remote) + local_only, len(local_only)


class DataService:
    def __init__(
        self,
        store: Optional[LocalStore] = None,
        gateway: Optional[RemoteGateway] = None,
        local_only: Optional[bool] = None,
        online: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store = store or LocalStore()
        self.local_only = settings.LOCAL_ONLY if local_only is None else local_only
        self.gateway = gateway or RemoteGateway(auth_headers=self.auth_headers, transport=transport)
        self._online = online
        self._seeded_credentials: Optional[dict[str, str]] = None
        logger.info(f"DataService ready ({'local-only' if self.local_only else 'remote-preferred'} mode)")

    # ── Local Store plumbing ──────────────────────────────────────────────
    def _persist(self, key: str, data: Any) -> bool:
        """
        Write JSON to the store. On quota exhaustion prune and retry once.
        Returns False when the data only lives in memory; never raises.
        """
        try:
            self.store.set_json(key, data)
            return True
        except QuotaExceededError as e:
            logger.warning(f"Local store quota exceeded writing {key}, pruning cache: {e}")
            self._prune_cache()
            try:
                self.store.set_json(key, data)
                return True
            except LocalStoreError as retry_error:
                logger.error(f"Failed to save {key} after pruning, keeping in memory only: {retry_error}")
                return False
        except LocalStoreError as e:
            logger.error(f"Failed to save {key}, keeping in memory only: {e}")
            return False

    def _prune_cache(self):
        # A pending collection holds the only copy of its offline writes
        pending = {_COLLECTION_KEYS[name] for name in self._pending_collections() if name in _COLLECTION_KEYS}
        try:
            for key in self.store.keys():
                if key in pending:
                    continue
                if key in PRUNABLE_KEYS or key.startswith(PRUNABLE_PREFIXES):
                    self.store.remove_item(key)
        except LocalStoreError as e:
            logger.error(f"Cache pruning failed: {e}")

    def _remove(self, key: str):
        try:
            self.store.remove_item(key)
        except LocalStoreError as e:
            logger.error(f"Failed to remove {key}: {e}")

    def _read(self, key: str, adapter: TypeAdapter) -> Optional[Any]:
        """Cached value parsed with `adapter`; None when missing or unreadable."""
        raw = self.store.get_json(key, None)
        if raw is None:
            return None
        try:
            return adapter.validate_python(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e.error_count()} error(s)")
            return None

    def _save_vehicles(self, vehicles: list[VehicleRecord]) -> bool:
        return self._persist(KEY_VEHICLES, [v.to_wire() for v in vehicles])

    def _save_users(self, users: list[UserRecord]) -> bool:
        return self._persist(KEY_USERS, [u.public().to_wire() for u in users])

    # ── Vehicles ──────────────────────────────────────────────────────────
    async def get_vehicles(self) -> list[VehicleRecord]:
        if self.local_only:
            return self._get_vehicles_local()
        try:
            vehicles = await self.gateway.list_vehicles()
        except GatewayError as e:
            logger.warning(f"API failed, falling back to local cache: {e}")
            return self._get_vehicles_local()
        self._save_vehicles(vehicles)
        return vehicles

    def _get_vehicles_local(self) -> list[VehicleRecord]:
        vehicles = self._read(KEY_VEHICLES, _vehicle_list)
        if vehicles is None:
            vehicles = default_vehicles()
            logger.info(f"Seeding local vehicle cache with {len(vehicles)} bundled records")
            self._save_vehicles(vehicles)
        return vehicles

    async def add_vehicle(self, vehicle: Union[VehicleRecord, dict]) -> VehicleRecord:
        if isinstance(vehicle, dict) and not vehicle.get("id"):
            vehicle = {**vehicle, "id": int(time.time() * 1000)}
        record = validate_record(VehicleRecord, vehicle)
        if self.local_only:
            return self._add_vehicle_local(record)
        try:
            created = await self.gateway.create_vehicle(record)
        except GatewayError as e:
            logger.warning(f"API failed, adding vehicle {record.id} locally only: {e}")
            self._mark_pending("vehicles")
            return self._add_vehicle_local(record)
        self._add_vehicle_local(created)
        return created

    def _add_vehicle_local(self, record: VehicleRecord) -> VehicleRecord:
        vehicles = [v for v in self._get_vehicles_local() if v.id != record.id]
        self._save_vehicles([record] + vehicles)
        return record

    async def update_vehicle(self, vehicle: Union[VehicleRecord, dict]) -> VehicleRecord:
        record = validate_record(VehicleRecord, vehicle)
        if self.local_only:
            return self._update_vehicle_local(record)
        try:
            updated = await self.gateway.update_vehicle(record)
        except GatewayError as e:
            logger.warning(f"API failed, updating vehicle {record.id} locally only: {e}")
            self._mark_pending("vehicles")
            return self._update_vehicle_local(record)
        self._update_vehicle_local(updated, match_id=record.id)
        return updated

    def _update_vehicle_local(self, record: VehicleRecord, match_id: Optional[int] = None) -> VehicleRecord:
        match_id = record.id if match_id is None else match_id
        vehicles = [record if v.id == match_id else v for v in self._get_vehicles_local()]
        self._save_vehicles(vehicles)
        return record

    async def delete_vehicle(self, vehicle_id: int) -> DeleteResult:
        if self.local_only:
            return self._delete_vehicle_local(vehicle_id)
        try:
            result = await self.gateway.delete_vehicle(vehicle_id)
        except GatewayError as e:
            logger.warning(f"API failed, deleting vehicle {vehicle_id} locally only: {e}")
            self._mark_pending("vehicles")
            return self._delete_vehicle_local(vehicle_id)
        self._delete_vehicle_local(vehicle_id)
        return result

    def _delete_vehicle_local(self, vehicle_id: int) -> DeleteResult:
        vehicles = self._get_vehicles_local()
        remaining = [v for v in vehicles if v.id != vehicle_id]
        if len(remaining) != len(vehicles):
            self._save_vehicles(remaining)
        return DeleteResult(success=True, id=vehicle_id)

    # ── Users & session ───────────────────────────────────────────────────
    async def get_users(self) -> list[UserRecord]:
        if self.local_only:
            return self._get_users_local()
        try:
            users = await self.gateway.list_users()
        except GatewayError as e:
            logger.warning(f"API failed, falling back to local cache: {e}")
            return self._get_users_local()
        users = [u.public() for u in users]
        self._save_users(users)
        return users

    def _get_users_local(self) -> list[UserRecord]:
        users = self._read(KEY_USERS, _user_list)
        if users is None:
            users = default_users()
            logger.info(f"Seeding local user cache with {len(users)} bundled records")
            self._save_users(users)
            credentials = self._get_credentials()
            if any(email not in credentials for email in DEFAULT_CREDENTIALS):
                self._persist(KEY_CREDENTIALS, {**self._seed_credentials(), **credentials})
        return users

    def _seed_credentials(self) -> dict[str, str]:
        """Hashes for the bundled demo accounts, computed once per instance."""
        if self._seeded_credentials is None:
            self._seeded_credentials = {email: hash_password(plain) for email, plain in DEFAULT_CREDENTIALS.items()}
        return self._seeded_credentials

    def _get_credentials(self) -> dict[str, str]:
        data = self.store.get_json(KEY_CREDENTIALS, {})
        stored = data if isinstance(data, dict) else {}
        if self._seeded_credentials is None:
            return stored
        return {**self._seeded_credentials, **stored}

    def _email_taken(self, email: str) -> bool:
        return any(u.email == email for u in self._get_users_local())

    async def login(self, credentials: Union[LoginCredentials, dict]) -> AuthResult:
        try:
            creds = validate_record(LoginCredentials, credentials)
        except ValueError:
            return AuthResult(success=False, reason="Email and password are required.")
        if self.local_only:
            return self._login_local(creds)
        try:
            result = await self.gateway.login(creds.to_wire())
        except GatewayError as e:
            rejection = self._business_rejection(e)
            if rejection:
                return rejection
            logger.warning(f"API failed, falling back to local login: {e}")
            return self._login_local(creds)
        if result.success and result.user:
            return self._start_session(result)
        return result

    def _login_local(self, creds: LoginCredentials) -> AuthResult:
        user = next((u for u in self._get_users_local() if u.email == creds.email), None)
        if user is None or not verify_password(creds.password, self._get_credentials().get(creds.email)):
            return AuthResult(success=False, reason=INVALID_CREDENTIALS_REASON)
        if creds.role and user.role != creds.role:
            return AuthResult(success=False, reason=f"User is not a registered {creds.role}.")
        if user.status == "inactive":
            return AuthResult(success=False, reason="Your account has been deactivated.")
        return self._start_session(AuthResult(success=True, user=user))

    async def register(self, request: Union[RegistrationRequest, dict]) -> AuthResult:
        """Raises RecordValidationError for a malformed request; every other outcome is a value."""
        req = validate_record(RegistrationRequest, request)
        if self._email_taken(req.email):
            return AuthResult(success=False, reason=DUPLICATE_EMAIL_REASON)
        if self.local_only:
            return self._register_local(req)
        try:
            result = await self.gateway.register(req.to_wire())
        except GatewayError as e:
            rejection = self._business_rejection(e)
            if rejection:
                return rejection
            logger.warning(f"API failed, registering {req.email} locally only: {e}")
            self._mark_pending("users")
            return self._register_local(req)
        if result.success and result.user:
            user = result.user.public()
            users = [u for u in self._get_users_local() if u.email != user.email]
            self._save_users(users + [user])
            return self._start_session(result)
        return result

    def _register_local(self, req: RegistrationRequest) -> AuthResult:
        user = req.to_user()
        self._save_users(self._get_users_local() + [user])
        credentials = self._get_credentials()
        credentials[req.email] = hash_password(req.password)
        self._persist(KEY_CREDENTIALS, credentials)
        return self._start_session(AuthResult(success=True, user=user))

    def _start_session(self, result: AuthResult) -> AuthResult:
        user = result.user.public()
        self._persist(KEY_CURRENT_USER, user.to_wire())
        if result.access_token:
            self._persist(KEY_ACCESS_TOKEN, result.access_token)
        return result.model_copy(update={"user": user})

    @staticmethod
    def _business_rejection(error: GatewayError) -> Optional[AuthResult]:
        payload = error.payload
        if error.status_code in _REJECTION_STATUSES and isinstance(payload, dict) and payload.get("success") is False:
            return AuthResult(success=False, reason=extract_error_message(payload) or error.message)
        return None

    def get_current_user(self) -> Optional[UserRecord]:
        data = self.store.get_json(KEY_CURRENT_USER, None)
        if data is None:
            return None
        try:
            return UserRecord.model_validate(data)
        except ValidationError:
            logger.warning("Discarding unreadable session entry")
            return None

    def get_access_token(self) -> Optional[str]:
        token = self.store.get_json(KEY_ACCESS_TOKEN, None)
        return token if isinstance(token, str) and token else None

    def set_access_token(self, token: Optional[str]) -> bool:
        if not token:
            self._remove(KEY_ACCESS_TOKEN)
            return True
        return self._persist(KEY_ACCESS_TOKEN, token)

    def logout(self):
        self._remove(KEY_CURRENT_USER)
        self._remove(KEY_ACCESS_TOKEN)

    def auth_headers(self) -> dict[str, str]:
        token = self.get_access_token()
        if token:
            return {"Authorization": f"Bearer {token}"}
        user = self.get_current_user()
        if user:
            logger.warning("No access token found, using email for authorization (not secure)")
            return {"Authorization": user.email}
        return {}

    # ── Vehicle taxonomy ──────────────────────────────────────────────────
    async def get_vehicle_data(self) -> VehicleTaxonomy:
        if self.local_only:
            return self._get_vehicle_data_local()
        try:
            data = await self.gateway.get_vehicle_data()
        except GatewayError as e:
            logger.warning(f"API failed, falling back to local cache: {e}")
            return self._get_vehicle_data_local()
        self._persist(KEY_VEHICLE_DATA, data.to_wire())
        return data

    def _get_vehicle_data_local(self) -> VehicleTaxonomy:
        data = self._read(KEY_VEHICLE_DATA, _taxonomy)
        if data is None or not data.root:
            data = default_vehicle_data()
            logger.info("Seeding local taxonomy cache with bundled vehicle data")
            self._persist(KEY_VEHICLE_DATA, data.to_wire())
        return data

    async def save_vehicle_data(self, data: Union[VehicleTaxonomy, dict]) -> bool:
        """True when the backend accepted the taxonomy, False when it was saved locally only."""
        taxonomy = validate_record(VehicleTaxonomy, data)
        if self.local_only:
            self._persist(KEY_VEHICLE_DATA, taxonomy.to_wire())
            return True
        try:
            await self.gateway.save_vehicle_data(taxonomy)
        except GatewayError as e:
            logger.warning(f"API failed, saving vehicle data locally only: {e}")
            self._persist(KEY_VEHICLE_DATA, taxonomy.to_wire())
            return False
        self._persist(KEY_VEHICLE_DATA, taxonomy.to_wire())
        return True

    # ── Connectivity & reconciliation ─────────────────────────────────────
    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool):
        """Host connectivity signal. Callers run sync_when_online() after a restore."""
        self._online = online

    def _pending_collections(self) -> set[str]:
        data = self.store.get_json(KEY_PENDING_SYNC, [])
        return set(data) if isinstance(data, list) else set()

    def _mark_pending(self, collection: str):
        pending = self._pending_collections()
        if collection not in pending:
            self._persist(KEY_PENDING_SYNC, sorted(pending | {collection}))

    def _clear_pending(self, collection: str):
        self._persist(KEY_PENDING_SYNC, sorted(self._pending_collections() - {collection}))

    async def sync_when_online(self) -> dict[str, int]:
        """
        Best-effort reconciliation of collections with local modifications.
        Returns {collection: number of local-only records kept}.
        """
        if self.local_only or not self.is_online():
            return {}

        collections = {
            "vehicles": (KEY_VEHICLES, _vehicle_list, self.gateway.list_vehicles, attrgetter("id"), self._save_vehicles),
            "users": (KEY_USERS, _user_list, self.gateway.list_users, attrgetter("email"), self._save_users),
        }
        report = {}
        for name in sorted(self._pending_collections()):
            if name not in collections:
                continue
            key, adapter, fetch, identity, save = collections[name]
            try:
                remote = await fetch()
            except GatewayError as e:
                logger.warning(f"Failed to sync {name}, will retry on next signal: {e}")
                continue
            local = self._read(key, adapter) or []
            merged, kept = merge_records(remote, local, identity)
            save(merged)
            self._clear_pending(name)
            report[name] = kept
            logger.info(f"Synced {name}: {len(remote)} remote, {kept} local-only kept")
        return report

    # ── Typed accessors for derived-data services ─────────────────────────
    def get_wishlist(self) -> list[int]:
        data = self.store.get_json(KEY_WISHLIST, [])
        return [int(i) for i in data] if isinstance(data, list) else []

    def set_wishlist(self, vehicle_ids: list[int]) -> bool:
        return self._persist(KEY_WISHLIST, list(dict.fromkeys(vehicle_ids)))

    def get_comparison_list(self) -> list[int]:
        data = self.store.get_json(KEY_COMPARISON, [])
        return [int(i) for i in data] if isinstance(data, list) else []

    def set_comparison_list(self, vehicle_ids: list[int]) -> bool:
        return self._persist(KEY_COMPARISON, list(dict.fromkeys(vehicle_ids)))

    def add_to_comparison(self, vehicle_id: int) -> bool:
        """False when the list already holds COMPARISON_LIMIT vehicles."""
        current = self.get_comparison_list()
        if vehicle_id in current:
            return True
        if len(current) >= COMPARISON_LIMIT:
            return False
        self.set_comparison_list(current + [vehicle_id])
        return True

    def get_phone_views(self, vehicle_id: int) -> int:
        value = self.store.get_json(_phone_views_key(vehicle_id), 0)
        return value if isinstance(value, int) else 0

    def increment_phone_views(self, vehicle_id: int) -> int:
        count = self.get_phone_views(vehicle_id) + 1
        self._persist(_phone_views_key(vehicle_id), count)
        return count

    def get_shares(self, vehicle_id: int) -> dict[str, int]:
        data = self.store.get_json(_shares_key(vehicle_id), {})
        return data if isinstance(data, dict) else {}

    def record_share(self, vehicle_id: int, platform: str) -> dict[str, int]:
        shares = self.get_shares(vehicle_id)
        shares[platform] = shares.get(platform, 0) + 1
        shares["total"] = shares.get("total", 0) + 1
        self._persist(_shares_key(vehicle_id), shares)
        return shares

    def get_saved_searches(self, user_id: str) -> list[SavedSearch]:
        return self._read(_saved_searches_key(user_id), _search_list) or []

    def set_saved_searches(self, user_id: str, searches: list[SavedSearch]) -> bool:
        return self._persist(_saved_searches_key(user_id), [s.to_wire() for s in searches])

    def get_price_history(self) -> dict[int, float]:
        data = self.store.get_json(KEY_PRICE_HISTORY, {})
        if not isinstance(data, dict):
            return {}
        history = {}
        for vehicle_id, price in data.items():
            try:
                history[int(vehicle_id)] = float(price)
            except (TypeError, ValueError):
                continue
        return history

    def set_price_history(self, history: dict[int, float]) -> bool:
        return self._persist(KEY_PRICE_HISTORY, {str(k): v for k, v in history.items()})

    def get_buyer_activity(self, user_id: str) -> Optional[BuyerActivity]:
        return self._read(_buyer_activity_key(user_id), _activity)

    def set_buyer_activity(self, activity: BuyerActivity) -> bool:
        return self._persist(_buyer_activity_key(activity.user_id), activity.to_wire())


_data_service: Optional[DataService] = None


def get_data_service() -> DataService:
    """Process-wide DataService built from settings. Created on first use."""
    global _data_service
    if _data_service is None:
        _data_service = DataService()
    return _data_service
