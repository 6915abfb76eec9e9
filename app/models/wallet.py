from pydantic import BaseModel, ConfigDict, Field
from typing import List


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class DiscoverRequest(_CamelModel):
    cert_url: str = Field(..., alias="certUrl", description="Public URL of a single credential")
    user_id: str = Field(..., alias="userId", description="Opaque id of the importing user")


class SyncRequest(_CamelModel):
    user_id: str = Field(..., alias="userId")
    wallet_url: str = Field(..., alias="walletUrl", description="Public wallet page listing all credentials")
    auto_sync: bool = Field(False, alias="autoSync")


class FullImportRequest(_CamelModel):
    cert_url: str = Field(..., alias="certUrl")
    user_id: str = Field(..., alias="userId")


class ToggleSyncRequest(_CamelModel):
    user_id: str = Field(..., alias="userId")
    enable: bool


class CredentialRecordOut(BaseModel):
    credential_uuid: str
    credential_url: str
    issuer_domain: str


class DiscoverResponse(_CamelModel):
    success: bool = True
    wallet_url: str = Field(..., serialization_alias="walletUrl")


class SyncResponse(_CamelModel):
    success: bool = True
    message: str = "Sync complete"
    total_found: int = Field(..., serialization_alias="totalFound")
    new_imported: int = Field(..., serialization_alias="newImported")
    records: List[CredentialRecordOut]


class FullImportResponse(_CamelModel):
    success: bool = True
    wallet_url: str = Field(..., serialization_alias="walletUrl")
    records: List[CredentialRecordOut]


class ToggleSyncResponse(BaseModel):
    success: bool = True
    updated: int = Field(0, description="Number of linked profiles changed")
