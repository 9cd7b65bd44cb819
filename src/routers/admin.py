import secrets
import string
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, status
from src.auth import AdminContext, create_admin_token, get_current_admin, verify_admin_credentials
from src.db import kv_store
from src.domain.analytics import AnalyticsIngestor
from src.models.analytics import AnalyticsOverview, AppWalletConfig
from src.models.auth import LoginRequest, LoginResponse, MeResponse
from src.models.webhooks import WebhookAdminView, WebhookConfig, WebhookCreate, WebhookUpdate
from src.observability import log_event, metrics_snapshot
from src.providers.registry import registry

router = APIRouter(prefix="/admin", tags=["admin"])

_ID_ALPHABET = string.ascii_lowercase + string.digits
_ID_LENGTH = 20


def generate_webhook_id() -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))


def _ingestor() -> AnalyticsIngestor:
    return AnalyticsIngestor(kv_store, registry)


def _require_known_provider(name: str) -> None:
    if registry.get(name) is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Provider "{name}" not supported',
        )


async def _load_webhook_or_404(webhook_id: str) -> dict:
    data = await kv_store.get_webhook(webhook_id)
    if data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Webhook not found")
    return data


# --- Auth ---

@router.post("/login", response_model=LoginResponse)
async def admin_login(data: LoginRequest):
    """Login with the operator email and password, returns JWT."""
    if not verify_admin_credentials(data.email, data.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    return LoginResponse(access_token=create_admin_token(data.email.strip().lower()))


@router.get("/me", response_model=MeResponse)
async def admin_me(admin: AdminContext = Depends(get_current_admin)):
    return MeResponse(email=admin.email)


# --- Providers ---

@router.get("/providers")
async def list_providers(_admin: AdminContext = Depends(get_current_admin)):
    """Provider catalog with the config schema used to render admin forms."""
    return registry.catalog()


# --- Webhook configs ---

@router.get("/webhooks", response_model=list[WebhookAdminView])
async def list_webhooks(_admin: AdminContext = Depends(get_current_admin)):
    webhooks = []
    for webhook_id in await kv_store.list_webhook_ids():
        data = await kv_store.get_webhook(webhook_id)
        if data is None:
            continue
        webhooks.append(WebhookAdminView.from_config(webhook_id, WebhookConfig.model_validate(data)))
    return webhooks


@router.post("/webhooks", response_model=WebhookAdminView, status_code=status.HTTP_201_CREATED)
async def create_webhook(data: WebhookCreate, admin: AdminContext = Depends(get_current_admin)):
    _require_known_provider(data.provider)
    webhook_id = generate_webhook_id()
    config = WebhookConfig(
        business_name=data.business_name,
        secret_key=data.secret_key,
        provider=data.provider,
        provider_config=data.provider_config,
        is_active=data.is_active,
        created_at=datetime.now(timezone.utc).isoformat(),
    )
    await kv_store.add_webhook(webhook_id, config.model_dump(by_alias=True, exclude_none=True))
    log_event("webhook_config_created", webhook_id=webhook_id, provider=data.provider, admin=admin.email)
    return WebhookAdminView.from_config(webhook_id, config)


@router.get("/webhooks/{webhook_id}", response_model=WebhookAdminView)
async def get_webhook(webhook_id: str, _admin: AdminContext = Depends(get_current_admin)):
    data = await _load_webhook_or_404(webhook_id)
    return WebhookAdminView.from_config(webhook_id, WebhookConfig.model_validate(data))


@router.put("/webhooks/{webhook_id}", response_model=WebhookAdminView)
async def update_webhook(
    webhook_id: str,
    data: WebhookUpdate,
    admin: AdminContext = Depends(get_current_admin),
):
    """Replace routing fields. The existing secret is kept unless a new one is sent."""
    _require_known_provider(data.provider)
    current = await _load_webhook_or_404(webhook_id)
    current.update(
        {
            "businessName": data.business_name,
            "provider": data.provider,
            "providerConfig": data.provider_config,
            "isActive": data.is_active,
        }
    )
    if data.secret_key:
        current["secretKey"] = data.secret_key
    await kv_store.put_webhook(webhook_id, current)
    log_event("webhook_config_updated", webhook_id=webhook_id, provider=data.provider, admin=admin.email)
    return WebhookAdminView.from_config(webhook_id, WebhookConfig.model_validate(current))


@router.delete("/webhooks/{webhook_id}")
async def delete_webhook(webhook_id: str, admin: AdminContext = Depends(get_current_admin)):
    """Delete the config, its index entry and its event log."""
    await _load_webhook_or_404(webhook_id)
    await kv_store.delete_webhook(webhook_id)
    log_event("webhook_config_deleted", webhook_id=webhook_id, admin=admin.email)
    return {"deleted": True, "id": webhook_id}


@router.get("/logs/{webhook_id}")
async def get_webhook_logs(webhook_id: str, _admin: AdminContext = Depends(get_current_admin)):
    return await kv_store.get_event_logs(webhook_id)


# --- AppWallet analytics ---

@router.get("/appwallet")
async def get_appwallet_analytics(
    device: str | None = None,
    _admin: AdminContext = Depends(get_current_admin),
):
    ingestor = _ingestor()
    if device:
        events = await ingestor.device_history(device)
        if events is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not found")
        return {"deviceId": device, "totalEvents": len(events), "events": events}

    stats = await ingestor.stats()
    return {
        "summary": {
            "totalEvents": stats.total_events,
            "uniqueDevicesCount": len(stats.unique_devices),
            "lastUpdated": stats.last_updated,
        },
        "eventBreakdown": stats.event_counts,
        "recentEvents": await ingestor.recent_events(),
        "devices": stats.unique_devices[-50:],
    }


@router.delete("/appwallet")
async def reset_appwallet_analytics(admin: AdminContext = Depends(get_current_admin)):
    await _ingestor().reset()
    log_event("appwallet_analytics_reset", admin=admin.email)
    return {"status": "ok", "message": "Analytics reset"}


@router.get("/appwallet/overview", response_model=AnalyticsOverview)
async def get_appwallet_overview(_admin: AdminContext = Depends(get_current_admin)):
    return await _ingestor().overview()


@router.get("/appwallet/config")
async def get_appwallet_config(_admin: AdminContext = Depends(get_current_admin)):
    config = await _ingestor().get_config()
    return config.model_dump(by_alias=True) if config else None


@router.put("/appwallet/config")
async def update_appwallet_config(data: AppWalletConfig, admin: AdminContext = Depends(get_current_admin)):
    if data.provider:
        _require_known_provider(data.provider)
    await _ingestor().put_config(data)
    log_event("appwallet_config_updated", provider=data.provider, is_active=data.is_active, admin=admin.email)
    return data.model_dump(by_alias=True)


@router.get("/appwallet/logs")
async def get_appwallet_forward_logs(_admin: AdminContext = Depends(get_current_admin)):
    return await _ingestor().forward_logs()


# --- Observability ---

@router.get("/metrics")
async def get_metrics(_admin: AdminContext = Depends(get_current_admin)):
    return metrics_snapshot()
