"""
PayPal client tests against an httpx.MockTransport
"""
import httpx
import json
import pytest
from datetime import datetime, timezone

from app.core.exceptions import (
    ProviderAuthError,
    ProviderRequestError,
    ProviderResponseError,
    ProviderTimeoutError,
)
from app.schemas.subscription import SubscriptionStatus
from app.services.paypal_service import PayPalConfig, PayPalService

CONFIG = PayPalConfig(client_id="client-abc", client_secret="secret-xyz", environment="sandbox", timeout=5)

CREATE_ARGS = dict(
    plan_ref="P-1",
    tenant_id="u1",
    tenant_email="a@b.com",
    return_url="https://x/ok",
    cancel_url="https://x/no",
)


class FakePayPal:
    """Records requests and answers the token endpoint plus one scripted API response"""

    def __init__(self, status_code=200, body=None, token_status=200):
        self.status_code = status_code
        self.body = body if body is not None else {}
        self.token_status = token_status
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/v1/oauth2/token":
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_client"})
            return httpx.Response(200, json={"access_token": "tok-1", "expires_in": 3600})
        if isinstance(self.body, str):
            return httpx.Response(self.status_code, text=self.body)
        return httpx.Response(self.status_code, json=self.body)

    def service(self, config=CONFIG) -> PayPalService:
        return PayPalService(config, transport=httpx.MockTransport(self))

    @property
    def api_requests(self):
        return [r for r in self.requests if r.url.path != "/v1/oauth2/token"]


async def test_create_subscription_returns_approval_link():
    fake = FakePayPal(body={
        "id": "I-123",
        "status": "APPROVAL_PENDING",
        "links": [
            {"rel": "self", "href": "https://api/self"},
            {"rel": "approve", "href": "https://www.sandbox.paypal.com/approve/I-123"},
        ],
    })

    created = await fake.service().create_subscription(**CREATE_ARGS)

    assert created.provider_subscription_id == "I-123"
    assert created.approval_url == "https://www.sandbox.paypal.com/approve/I-123"
    assert created.raw_status == "APPROVAL_PENDING"

    token_request, api_request = fake.requests
    assert token_request.url.host == "api-m.sandbox.paypal.com"
    assert token_request.headers["authorization"].startswith("Basic ")
    assert api_request.headers["authorization"] == "Bearer tok-1"
    body = json.loads(api_request.content)
    assert body["plan_id"] == "P-1"
    assert body["custom_id"] == "u1"
    assert body["subscriber"]["email_address"] == "a@b.com"
    assert body["application_context"]["return_url"] == "https://x/ok"
    assert body["application_context"]["cancel_url"] == "https://x/no"


async def test_missing_approve_link_is_a_response_error():
    fake = FakePayPal(body={"id": "I-123", "status": "APPROVAL_PENDING", "links": []})

    with pytest.raises(ProviderResponseError) as exc:
        await fake.service().create_subscription(**CREATE_ARGS)

    assert exc.value.detail == "No approval link found in PayPal response"


async def test_missing_credentials_make_no_http_call():
    fake = FakePayPal()
    service = fake.service(PayPalConfig(client_id="client-abc", client_secret=None))

    with pytest.raises(ProviderAuthError) as exc:
        await service.create_subscription(**CREATE_ARGS)

    assert "PAYPAL_CLIENT_SECRET" in exc.value.detail
    assert fake.requests == []


async def test_rejected_token_is_an_auth_error():
    fake = FakePayPal(token_status=401)

    with pytest.raises(ProviderAuthError):
        await fake.service().fetch_subscription("I-123")

    assert fake.api_requests == []


async def test_non_2xx_carries_status_and_body():
    fake = FakePayPal(status_code=422, body="UNPROCESSABLE_ENTITY")

    with pytest.raises(ProviderRequestError) as exc:
        await fake.service().create_subscription(**CREATE_ARGS)

    assert exc.value.upstream_status == 422
    assert exc.value.detail == "PayPal API error: 422 - UNPROCESSABLE_ENTITY"
    assert exc.value.status_code == 500


async def test_fetch_subscription_parses_periods():
    fake = FakePayPal(body={
        "id": "I-123",
        "status": "ACTIVE",
        "plan_id": "P-1",
        "custom_id": "u1",
        "start_time": "2024-01-01T00:00:00Z",
        "subscriber": {"payer_id": "PAYER1"},
        "billing_info": {"next_billing_time": "2024-02-01T10:00:00Z"},
    })

    state = await fake.service().fetch_subscription("I-123")

    assert state.raw_status == "ACTIVE"
    assert state.period_start == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert state.period_end == datetime(2024, 2, 1, 10, tzinfo=timezone.utc)
    assert state.plan_ref == "P-1"
    assert state.metadata == {"payer_id": "PAYER1", "custom_id": "u1"}
    assert fake.api_requests[0].url.path == "/v1/billing/subscriptions/I-123"


async def test_fetch_without_status_is_a_response_error():
    fake = FakePayPal(body={"id": "I-123"})

    with pytest.raises(ProviderResponseError):
        await fake.service().fetch_subscription("I-123")


async def test_cancel_posts_reason():
    fake = FakePayPal(status_code=204, body="")

    result = await fake.service().cancel_subscription("I-123", "User requested cancellation")

    assert result.success is True
    assert result.message == "Subscription cancelled successfully"
    request = fake.api_requests[0]
    assert request.method == "POST"
    assert request.url.path == "/v1/billing/subscriptions/I-123/cancel"
    assert json.loads(request.content) == {"reason": "User requested cancellation"}


async def test_cancel_of_cancelled_subscription_raises():
    fake = FakePayPal(status_code=422, body='{"name":"UNPROCESSABLE_ENTITY","details":[{"issue":"SUBSCRIPTION_STATUS_INVALID"}]}')

    with pytest.raises(ProviderRequestError) as exc:
        await fake.service().cancel_subscription("I-123", "again")

    assert exc.value.detail.startswith("PayPal cancellation failed: 422")


async def test_timeout_maps_to_provider_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    service = PayPalService(CONFIG, transport=httpx.MockTransport(handler))

    with pytest.raises(ProviderTimeoutError) as exc:
        await service.fetch_subscription("I-123")

    assert exc.value.code == "provider_timeout"


@pytest.mark.parametrize("environment,url", [
    ("sandbox", "https://www.sandbox.paypal.com/myaccount/autopay/"),
    ("live", "https://www.paypal.com/myaccount/autopay/"),
])
async def test_portal_is_degraded_account_page(environment, url):
    fake = FakePayPal()
    service = fake.service(PayPalConfig(client_id="c", client_secret="s", environment=environment))

    session = await service.create_portal_session("I-123", "https://x/billing")

    assert session.url == url
    assert session.degraded is True
    assert fake.requests == []


def test_status_normalization():
    service = PayPalService(CONFIG)

    assert service.normalize_status("ACTIVE") == SubscriptionStatus.ACTIVE
    assert service.normalize_status("APPROVAL_PENDING") == SubscriptionStatus.PENDING
    assert service.normalize_status("CANCELLED") == SubscriptionStatus.CANCELLED
    assert service.normalize_status("SOMETHING_NEW") == SubscriptionStatus.UNKNOWN
    assert service.normalize_status(None) == SubscriptionStatus.UNKNOWN


async def test_diagnostics_masks_client_id():
    fake = FakePayPal(body={"plans": [{"id": "P-1", "name": "Starter", "status": "ACTIVE"}]})

    report = await fake.service().diagnostics()

    assert report["clientIdPrefix"] == "client-a..."
    assert report["apiWorking"] is True
    assert report["planIds"] == [{"id": "P-1", "name": "Starter", "status": "ACTIVE"}]
    assert "secret-xyz" not in json.dumps(report)
