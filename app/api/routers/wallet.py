import logging

from fastapi import APIRouter, HTTPException

from app.models.wallet import (
    DiscoverRequest,
    DiscoverResponse,
    FullImportRequest,
    FullImportResponse,
    SyncRequest,
    SyncResponse,
    ToggleSyncRequest,
    ToggleSyncResponse,
)
from app.services.crawl.base import Spider
from app.services.errors import (
    LinkNotFound,
    NavigationError,
    PersistenceError,
    SessionError,
    ValidationError,
    WalletSyncError,
)
from app.services.wallet_sync_service import get_wallet_sync_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["wallet"])


def _raise_http(exc: WalletSyncError):
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, LinkNotFound):
        raise HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (NavigationError, SessionError)):
        raise HTTPException(status_code=502, detail=str(exc))
    if isinstance(exc, PersistenceError):
        logger.error("Storage failure: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to save wallet data")
    raise HTTPException(status_code=500, detail=str(exc))


@router.post("/discover", response_model=DiscoverResponse)
def api_discover(body: DiscoverRequest):
    try:
        wallet_url = get_wallet_sync_service().discover(body.user_id, body.cert_url)
    except WalletSyncError as exc:
        _raise_http(exc)
    return DiscoverResponse(wallet_url=wallet_url)


@router.post("/sync", response_model=SyncResponse)
def api_sync(body: SyncRequest):
    """Link (or refresh) a wallet and import credentials not stored yet."""
    try:
        result = get_wallet_sync_service().sync(body.user_id, body.wallet_url, body.auto_sync)
    except WalletSyncError as exc:
        _raise_http(exc)
    return SyncResponse(
        total_found=result["total_found"],
        new_imported=result["new_imported"],
        records=Spider.normalize_records(result["records"]),
    )


@router.post("/full-import", response_model=FullImportResponse)
def api_full_import(body: FullImportRequest):
    """Discover the wallet from one credential page and import it with auto-sync off."""
    try:
        result = get_wallet_sync_service().full_import(body.user_id, body.cert_url)
    except WalletSyncError as exc:
        _raise_http(exc)
    return FullImportResponse(wallet_url=result["wallet_url"], records=Spider.normalize_records(result["records"]))


@router.get("/credentials/{user_id}")
def api_list_credentials(user_id: str):
    try:
        return get_wallet_sync_service().list_credentials(user_id)
    except WalletSyncError as exc:
        _raise_http(exc)


@router.get("/profile/{user_id}")
def api_get_profile(user_id: str):
    try:
        return get_wallet_sync_service().get_profile(user_id) or {}
    except WalletSyncError as exc:
        _raise_http(exc)


@router.post("/toggle-sync", response_model=ToggleSyncResponse)
def api_toggle_sync(body: ToggleSyncRequest):
    try:
        updated = get_wallet_sync_service().set_auto_sync(body.user_id, body.enable)
    except WalletSyncError as exc:
        _raise_http(exc)
    return ToggleSyncResponse(updated=updated)
