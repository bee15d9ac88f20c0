# tests/test_data_service.py
"""Unit tests for the cache-aside DataService (fallback, coherence, auth, quota, sync)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import json
import httpx
import pytest
from unittest.mock import patch
from reride.schemas.errors import RecordValidationError
from reride.schemas.user import LoginCredentials
from reride.schemas.vehicle import VehicleRecord
from reride.services.data_service import (
    COMPARISON_LIMIT,
    DUPLICATE_EMAIL_REASON,
    KEY_ACCESS_TOKEN,
    KEY_COMPARISON,
    KEY_CREDENTIALS,
    KEY_CURRENT_USER,
    KEY_PENDING_SYNC,
    KEY_USERS,
    KEY_VEHICLES,
    KEY_WISHLIST,
    DataService,
    merge_records,
)
from reride.services.buyer_service import get_saved_searches, save_search
from reride.services.fallback_data import DEFAULT_CREDENTIALS, DEMO_CUSTOMER_EMAIL, DEMO_PASSWORD, DEMO_SELLER_EMAIL
from reride.services.local_store import LocalStore, QuotaExceededError
from reride.utils.passwords import hash_password

from conftest import offline_handler

CAMRY = {"id": 1, "make": "Toyota", "model": "Camry", "year": 2020, "price": 25000}
CIVIC = {"id": 1, "make": "Honda", "model": "Civic", "year": 2019, "price": 900000}


class Recorder:
    """MockTransport handler that answers from a route table and records every request."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            raise httpx.ConnectError("no route", request=request)
        status, body = self.routes[key]
        return httpx.Response(status, json=body)


def remote_service(store, handler):
    return DataService(store=store, local_only=False, transport=httpx.MockTransport(handler))


# ── Reads ────────────────────────────────────────────────────────────────────

class TestReadPath:
    @pytest.mark.asyncio
    async def test_remote_result_returned_and_cached(self, store):
        recorder = Recorder({("GET", "/api/vehicles"): (200, [CAMRY])})
        vehicles = await remote_service(store, recorder).get_vehicles()

        assert vehicles == [VehicleRecord(**CAMRY)]
        # Network gone: same collection comes back from the cache
        cached = await remote_service(store, offline_handler).get_vehicles()
        assert cached == vehicles

    @pytest.mark.asyncio
    async def test_falls_back_to_preseeded_cache(self, store, offline_service):
        store.set_json(KEY_VEHICLES, [CIVIC])
        vehicles = await offline_service.get_vehicles()
        assert [(v.make, v.model) for v in vehicles] == [("Honda", "Civic")]

    @pytest.mark.asyncio
    async def test_empty_cache_and_offline_returns_seed(self, store, offline_service):
        vehicles = await offline_service.get_vehicles()
        assert len(vehicles) > 0
        assert all(isinstance(v, VehicleRecord) for v in vehicles)
        assert len(store.get_json(KEY_VEHICLES)) == len(vehicles)

    @pytest.mark.asyncio
    async def test_remote_error_status_falls_back(self, store):
        store.set_json(KEY_VEHICLES, [CIVIC])
        recorder = Recorder({("GET", "/api/vehicles"): (500, {"error": "boom"})})
        vehicles = await remote_service(store, recorder).get_vehicles()
        assert vehicles[0].model == "Civic"

    @pytest.mark.asyncio
    async def test_emptied_collection_is_not_reseeded(self, store, local_service):
        store.set_json(KEY_VEHICLES, [])
        assert await local_service.get_vehicles() == []

    @pytest.mark.asyncio
    async def test_corrupt_cache_reseeds(self, store, local_service):
        store.set_item(KEY_VEHICLES, "[{broken")
        vehicles = await local_service.get_vehicles()
        assert len(vehicles) > 0

    @pytest.mark.asyncio
    async def test_local_only_never_touches_network(self, store):
        recorder = Recorder({("GET", "/api/vehicles"): (200, [CAMRY])})
        service = DataService(store=store, local_only=True, transport=httpx.MockTransport(recorder))
        await service.get_vehicles()
        await service.get_users()
        await service.get_vehicle_data()
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_users_cached_without_passwords(self, store):
        users = [{"email": "x@y.com", "name": "X", "password": "$2b$secret"}]
        recorder = Recorder({("GET", "/api/users"): (200, users)})
        result = await remote_service(store, recorder).get_users()

        assert result[0].password is None
        assert "password" not in store.get_json(KEY_USERS)[0]

    @pytest.mark.asyncio
    async def test_vehicle_data_seeded_locally(self, local_service):
        data = await local_service.get_vehicle_data()
        assert "Four Wheeler" in data.categories()


# ── Writes ───────────────────────────────────────────────────────────────────

class TestWritePath:
    @pytest.mark.asyncio
    async def test_invalid_vehicle_raises_before_any_io(self, store):
        recorder = Recorder()
        service = remote_service(store, recorder)
        with pytest.raises(RecordValidationError) as exc:
            await service.add_vehicle({"id": 9, "make": "", "model": "X", "year": 2020, "price": -5})
        assert any(e.startswith("make") for e in exc.value.errors)
        assert any(e.startswith("price") for e in exc.value.errors)
        assert recorder.requests == []
        assert store.keys() == []

    @pytest.mark.asyncio
    async def test_invalid_update_raises(self, local_service):
        with pytest.raises(RecordValidationError):
            await local_service.update_vehicle({"id": 1, "make": "Honda"})

    @pytest.mark.asyncio
    async def test_local_add_prepends(self, local_service):
        await local_service.add_vehicle({**CAMRY, "id": 99})
        vehicles = await local_service.get_vehicles()
        assert vehicles[0].id == 99

    @pytest.mark.asyncio
    async def test_add_without_id_gets_one(self, local_service):
        created = await local_service.add_vehicle({k: v for k, v in CAMRY.items() if k != "id"})
        assert created.id > 0

    @pytest.mark.asyncio
    async def test_local_update_replaces_by_id(self, local_service):
        await local_service.get_vehicles()
        await local_service.update_vehicle({**CAMRY, "id": 1, "price": 111})
        vehicles = await local_service.get_vehicles()
        assert next(v for v in vehicles if v.id == 1).price == 111

    @pytest.mark.asyncio
    async def test_delete_twice_is_idempotent(self, store, local_service):
        await local_service.get_vehicles()
        await local_service.delete_vehicle(1)
        after_first = store.get_item(KEY_VEHICLES)
        result = await local_service.delete_vehicle(1)
        assert result.success
        assert store.get_item(KEY_VEHICLES) == after_first

    @pytest.mark.asyncio
    async def test_remote_add_uses_server_response(self, store):
        server_copy = {**CAMRY, "id": 42, "createdAt": "2026-01-01T00:00:00Z"}
        recorder = Recorder({("POST", "/api/vehicles"): (201, server_copy)})
        created = await remote_service(store, recorder).add_vehicle(CAMRY)

        assert created.id == 42
        assert store.get_json(KEY_VEHICLES)[0]["id"] == 42
        assert store.get_json(KEY_PENDING_SYNC, []) == []

    @pytest.mark.asyncio
    async def test_remote_delete_updates_cache(self, store):
        store.set_json(KEY_VEHICLES, [CAMRY])
        recorder = Recorder({("DELETE", "/api/vehicles"): (200, {"success": True, "id": 1})})
        await remote_service(store, recorder).delete_vehicle(1)
        assert store.get_json(KEY_VEHICLES) == []

    @pytest.mark.asyncio
    async def test_failed_remote_write_goes_local_and_marks_pending(self, store, offline_service):
        store.set_json(KEY_VEHICLES, [])
        created = await offline_service.add_vehicle(CAMRY)
        assert created.make == "Toyota"
        assert store.get_json(KEY_VEHICLES)[0]["id"] == 1
        assert store.get_json(KEY_PENDING_SYNC) == ["vehicles"]

    @pytest.mark.asyncio
    async def test_save_vehicle_data_reports_remote_acceptance(self, store):
        data = {"Two Wheeler": [{"name": "TVS", "models": [{"name": "Jupiter", "variants": ["ZX"]}]}]}
        recorder = Recorder({("POST", "/api/vehicles"): (200, {"success": True})})
        assert await remote_service(store, recorder).save_vehicle_data(data) is True
        assert json.loads(recorder.requests[0].content) == data

        assert await remote_service(store, offline_handler).save_vehicle_data(data) is False
        saved = await DataService(store=store, local_only=True).get_vehicle_data()
        assert saved.categories() == ["Two Wheeler"]


# ── Session / auth ───────────────────────────────────────────────────────────

class TestAuth:
    @pytest.mark.asyncio
    async def test_local_login_with_demo_credentials(self, store, local_service):
        result = await local_service.login({"email": DEMO_SELLER_EMAIL, "password": DEMO_PASSWORD})
        assert result.success
        assert result.user.email == DEMO_SELLER_EMAIL
        assert store.get_json(KEY_CURRENT_USER)["email"] == DEMO_SELLER_EMAIL

    @pytest.mark.asyncio
    async def test_local_login_wrong_password(self, store, local_service):
        result = await local_service.login({"email": DEMO_SELLER_EMAIL, "password": "nope"})
        assert not result.success
        assert result.reason == "Invalid credentials."
        assert store.get_item(KEY_CURRENT_USER) is None

    @pytest.mark.asyncio
    async def test_local_login_role_mismatch(self, local_service):
        result = await local_service.login(
            {"email": DEMO_CUSTOMER_EMAIL, "password": DEMO_PASSWORD, "role": "seller"}
        )
        assert result.reason == "User is not a registered seller."

    @pytest.mark.asyncio
    async def test_login_never_raises_on_missing_fields(self, local_service):
        result = await local_service.login({"email": "someone@x.com"})
        assert not result.success

    @pytest.mark.asyncio
    async def test_cached_users_never_hold_passwords(self, store, local_service):
        await local_service.register({"name": "Asha", "email": "asha@example.com", "password": "s3cret"})
        assert all("password" not in u for u in store.get_json(KEY_USERS))
        assert "s3cret" not in store.get_item(KEY_CREDENTIALS)
        assert "s3cret" not in store.get_item(KEY_CURRENT_USER)

    @pytest.mark.asyncio
    async def test_remote_rejection_returned_and_session_untouched(self, store):
        recorder = Recorder({("POST", "/api/users"): (200, {"success": False, "reason": "Invalid credentials"})})
        result = await remote_service(store, recorder).login({"email": "test@test.com", "password": "wrongpassword"})

        assert result.success is False
        assert result.reason == "Invalid credentials"
        assert store.get_item(KEY_CURRENT_USER) is None

    @pytest.mark.asyncio
    async def test_remote_401_is_a_rejection_not_a_fallback(self, store):
        recorder = Recorder({("POST", "/api/users"): (401, {"success": False, "reason": "Invalid credentials"})})
        # Demo credentials would succeed locally; the remote answer must win
        result = await remote_service(store, recorder).login({"email": DEMO_SELLER_EMAIL, "password": DEMO_PASSWORD})
        assert result.success is False
        assert result.reason == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_remote_login_stores_token_and_stripped_user(self, store):
        payload = {"success": True, "user": {"email": "a@b.com", "password": "hash"}, "accessToken": "tok-1"}
        recorder = Recorder({("POST", "/api/users"): (200, payload)})
        service = remote_service(store, recorder)
        result = await service.login({"email": "A@B.com", "password": "pw"})

        assert result.success
        assert result.user.password is None
        assert store.get_json(KEY_ACCESS_TOKEN) == "tok-1"
        assert service.auth_headers() == {"Authorization": "Bearer tok-1"}
        assert json.loads(recorder.requests[0].content)["email"] == "a@b.com"

    @pytest.mark.asyncio
    async def test_offline_login_falls_back_locally(self, offline_service):
        result = await offline_service.login({"email": DEMO_SELLER_EMAIL, "password": DEMO_PASSWORD})
        assert result.success

    @pytest.mark.asyncio
    async def test_duplicate_registration_rejected_case_insensitively(self, store, local_service):
        before = len(await local_service.get_users())
        result = await local_service.register({"name": "Dup", "email": "DEMO@ReRide.com", "password": "x"})

        assert result.success is False
        assert result.reason == DUPLICATE_EMAIL_REASON
        assert len(store.get_json(KEY_USERS)) == before

    @pytest.mark.asyncio
    async def test_duplicate_check_runs_before_remote_call(self, store):
        recorder = Recorder()
        result = await remote_service(store, recorder).register(
            {"name": "Dup", "email": DEMO_CUSTOMER_EMAIL, "password": "x"}
        )
        assert result.reason == DUPLICATE_EMAIL_REASON
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_malformed_registration_raises(self, local_service):
        with pytest.raises(RecordValidationError):
            await local_service.register({"name": "Bad", "email": "not-an-email", "password": "x"})

    @pytest.mark.asyncio
    async def test_local_registration_then_login(self, local_service):
        registered = await local_service.register(
            {"name": "Ravi", "email": "ravi@example.com", "password": "pw1", "role": "seller"}
        )
        assert registered.success
        assert registered.user.subscription_plan == "free"

        local_service.logout()
        assert local_service.get_current_user() is None

        result = await local_service.login({"email": "ravi@example.com", "password": "pw1"})
        assert result.success

    @pytest.mark.asyncio
    async def test_remote_duplicate_409_returned_as_result(self, store):
        body = {"success": False, "reason": DUPLICATE_EMAIL_REASON}
        recorder = Recorder({("POST", "/api/users"): (409, body)})
        result = await remote_service(store, recorder).register(
            {"name": "N", "email": "new@example.com", "password": "x"}
        )
        assert result.reason == DUPLICATE_EMAIL_REASON
        assert store.get_item(KEY_CURRENT_USER) is None


class TestAuthHeaders:
    def test_no_session_no_header(self, local_service):
        assert local_service.auth_headers() == {}

    def test_email_fallback_when_no_token(self, store, local_service):
        store.set_json(KEY_CURRENT_USER, {"email": "a@b.com"})
        assert local_service.auth_headers() == {"Authorization": "a@b.com"}

    def test_token_preferred(self, store, local_service):
        store.set_json(KEY_CURRENT_USER, {"email": "a@b.com"})
        local_service.set_access_token("abc")
        assert local_service.auth_headers() == {"Authorization": "Bearer abc"}

    def test_logout_clears_token(self, local_service):
        local_service.set_access_token("abc")
        local_service.logout()
        assert local_service.get_access_token() is None


# ── Quota ────────────────────────────────────────────────────────────────────

class TestQuotaDegradation:
    @pytest.mark.asyncio
    async def test_blocked_writes_still_return_seed(self, store, local_service):
        with patch.object(store, "set_item", side_effect=QuotaExceededError("full")):
            vehicles = await local_service.get_vehicles()
        assert len(vehicles) > 0
        assert all(isinstance(v, VehicleRecord) for v in vehicles)

    @pytest.mark.asyncio
    async def test_prune_frees_space_but_keeps_session(self):
        store = LocalStore(url="sqlite://", quota_bytes=4000)
        store.set_json(KEY_CURRENT_USER, {"email": "a@b.com"})
        store.set_json(KEY_WISHLIST, [1])
        store.set_json("reride:shares:7", "x" * 3800)
        service = DataService(store=store, local_only=True)

        await service.get_vehicles()

        keys = store.keys()
        assert "reride:shares:7" not in keys
        assert KEY_CURRENT_USER in keys
        assert KEY_WISHLIST in keys
        assert KEY_VEHICLES in keys

    def test_accessor_write_failure_returns_false(self, store, local_service):
        with patch.object(store, "set_item", side_effect=QuotaExceededError("full")):
            assert local_service.set_wishlist([1, 2]) is False

    @pytest.mark.asyncio
    async def test_prune_keeps_saved_searches(self):
        store = LocalStore(url="sqlite://", quota_bytes=6000)
        store.set_json(KEY_VEHICLES, [])
        service = DataService(store=store, local_only=True)
        saved = save_search("u1", {"make": "Honda"}, service=service)
        store.set_json("reride:shares:9", "x" * 4000)

        await service.add_vehicle({**CIVIC, "id": 77, "description": "d" * 2500})

        assert get_saved_searches("u1", service) == [saved]
        assert "reride:shares:9" not in store.keys()
        assert [v.id for v in await service.get_vehicles()] == [77]

    def test_prune_keeps_client_owned_keys(self, store, local_service):
        local_service.set_price_history({1: 500000})
        store.set_json("reride:buyer_activity:u1", {"userId": "u1"})
        local_service._prune_cache()
        assert local_service.get_price_history() == {1: 500000}
        assert "reride:buyer_activity:u1" in store.keys()

    def test_prune_skips_pending_user_cache(self):
        store = LocalStore(url="sqlite://", quota_bytes=6000)
        store.set_json(KEY_PENDING_SYNC, ["users"])
        store.set_json(KEY_USERS, [{"email": "offline@example.com", "name": "Offline"}])
        store.set_json("reride:shares:9", "x" * 4000)
        service = DataService(store=store, local_only=True)

        assert service.set_wishlist(list(range(1000, 1600))) is True

        assert "reride:shares:9" not in store.keys()
        assert store.get_json(KEY_USERS) == [{"email": "offline@example.com", "name": "Offline"}]

    def test_blocked_store_hashes_demo_credentials_once(self, store, local_service):
        with patch.object(store, "set_item", side_effect=QuotaExceededError("full")), \
                patch("reride.services.data_service.hash_password", wraps=hash_password) as hasher:
            local_service._get_users_local()
            local_service._get_users_local()
            result = local_service._login_local(
                LoginCredentials(email=DEMO_SELLER_EMAIL, password=DEMO_PASSWORD)
            )
        assert hasher.call_count == len(DEFAULT_CREDENTIALS)
        assert result.success


# ── Sync ─────────────────────────────────────────────────────────────────────

class TestSync:
    @pytest.mark.asyncio
    async def test_offline_signal_makes_no_calls(self, store):
        recorder = Recorder({("GET", "/api/vehicles"): (200, [CAMRY])})
        service = DataService(store=store, local_only=False, online=False, transport=httpx.MockTransport(recorder))
        store.set_json(KEY_PENDING_SYNC, ["vehicles"])

        assert await service.sync_when_online() == {}
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_local_only_never_syncs(self, store):
        recorder = Recorder()
        service = DataService(store=store, local_only=True, transport=httpx.MockTransport(recorder))
        store.set_json(KEY_PENDING_SYNC, ["vehicles"])
        assert await service.sync_when_online() == {}
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_merges_local_only_records(self, store, offline_service):
        store.set_json(KEY_VEHICLES, [])
        await offline_service.add_vehicle({**CIVIC, "id": 500})

        recorder = Recorder({("GET", "/api/vehicles"): (200, [CAMRY])})
        report = await remote_service(store, recorder).sync_when_online()

        assert report == {"vehicles": 1}
        assert [v["id"] for v in store.get_json(KEY_VEHICLES)] == [1, 500]
        assert store.get_json(KEY_PENDING_SYNC) == []

    @pytest.mark.asyncio
    async def test_pending_mark_survives_prune(self):
        store = LocalStore(url="sqlite://", quota_bytes=6000)
        store.set_json(KEY_VEHICLES, [])
        store.set_json("reride:shares:9", "x" * 4000)
        offline = DataService(store=store, local_only=False, transport=httpx.MockTransport(offline_handler))

        await offline.add_vehicle({**CIVIC, "id": 500, "description": "d" * 2500})

        assert "reride:shares:9" not in store.keys()
        assert store.get_json(KEY_PENDING_SYNC) == ["vehicles"]

        recorder = Recorder({("GET", "/api/vehicles"): (200, [CAMRY])})
        report = await remote_service(store, recorder).sync_when_online()
        assert report == {"vehicles": 1}
        assert [v["id"] for v in store.get_json(KEY_VEHICLES)] == [1, 500]

    @pytest.mark.asyncio
    async def test_nothing_pending_nothing_fetched(self, store):
        recorder = Recorder()
        assert await remote_service(store, recorder).sync_when_online() == {}
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_mark_kept_when_remote_fails(self, store, offline_service):
        store.set_json(KEY_PENDING_SYNC, ["vehicles"])
        assert await offline_service.sync_when_online() == {}
        assert store.get_json(KEY_PENDING_SYNC) == ["vehicles"]

    def test_set_online_toggles(self, local_service):
        local_service.set_online(False)
        assert local_service.is_online() is False
        local_service.set_online(True)
        assert local_service.is_online() is True

    def test_merge_remote_wins(self):
        remote = [{"id": 1, "v": "remote"}]
        local = [{"id": 1, "v": "local"}, {"id": 2, "v": "local"}]
        merged, kept = merge_records(remote, local, key=lambda r: r["id"])
        assert merged == [{"id": 1, "v": "remote"}, {"id": 2, "v": "local"}]
        assert kept == 1


# ── Typed accessors ──────────────────────────────────────────────────────────

class TestAccessors:
    def test_wishlist_deduplicates(self, local_service):
        local_service.set_wishlist([3, 1, 3])
        assert local_service.get_wishlist() == [3, 1]

    def test_comparison_refuses_past_limit(self, store, local_service):
        for vehicle_id in range(COMPARISON_LIMIT):
            assert local_service.add_to_comparison(vehicle_id)
        assert local_service.add_to_comparison(99) is False
        assert len(store.get_json(KEY_COMPARISON)) == COMPARISON_LIMIT

    def test_comparison_readding_is_accepted(self, local_service):
        local_service.add_to_comparison(5)
        assert local_service.add_to_comparison(5) is True
        assert local_service.get_comparison_list() == [5]

    def test_share_counters_by_platform(self, local_service):
        local_service.record_share(7, "whatsapp")
        shares = local_service.record_share(7, "copy")
        assert shares == {"whatsapp": 1, "copy": 1, "total": 2}

    def test_price_history_keys_are_ints(self, local_service):
        local_service.set_price_history({4: 500000.0})
        assert local_service.get_price_history() == {4: 500000.0}
